"""Service layer for business logic.

This layer contains the cache pipeline and its orchestration.
Services depend on protocols (interfaces), not concrete implementations,
making them testable and flexible.

Architecture:
    Handler -> Service -> Repository
    (HTTP)  -> (Business) -> (Data Access)
"""

from .cache_service import CacheService
from .entry_store import CacheEntryStore, utc_now
from .keys import derive_cache_key
from .policy import EligibilityPolicy
from .upstream import resolve_ttl, to_upstream_request

__all__ = [
    "CacheService",
    "CacheEntryStore",
    "EligibilityPolicy",
    "derive_cache_key",
    "resolve_ttl",
    "to_upstream_request",
    "utc_now",
]
