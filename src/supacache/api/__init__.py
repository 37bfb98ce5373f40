"""HTTP API for supacache."""
