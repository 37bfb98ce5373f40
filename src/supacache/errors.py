"""Error taxonomy for the cache pipeline.

Only ``AuthenticationError`` and ``UpstreamError`` ever reach the caller.
Codec and store failures are recovered inside the pipeline: a failed read
is a cache miss and a failed write is logged and dropped.
"""

from typing import Any


class SupacacheError(Exception):
    """Base exception for supacache."""

    def __init__(self, code: str, message: str, details: dict[str, Any] | None = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)


class AuthenticationError(SupacacheError):
    """Missing or wrong service key."""

    def __init__(self, message: str = "Unauthorized", details: dict[str, Any] | None = None):
        super().__init__("AUTHENTICATION_ERROR", message, details)


class CodecError(SupacacheError):
    """Base class for compression and encryption failures."""


class DecodeError(CodecError):
    """Stored data could not be decompressed, decrypted or validated."""

    def __init__(self, message: str = "Failed to decode cache entry", details: dict[str, Any] | None = None):
        super().__init__("DECODE_ERROR", message, details)


class EncodeError(CodecError):
    """A response body could not be encoded for storage."""

    def __init__(self, message: str = "Failed to encode cache entry", details: dict[str, Any] | None = None):
        super().__init__("ENCODE_ERROR", message, details)


class StoreError(SupacacheError):
    """The persistence backend failed on read or write."""

    def __init__(self, message: str = "Cache store error", details: dict[str, Any] | None = None):
        super().__init__("STORE_ERROR", message, details)


class UpstreamError(SupacacheError):
    """The upstream API could not be reached or did not answer."""

    def __init__(self, message: str = "Upstream request failed", details: dict[str, Any] | None = None):
        super().__init__("UPSTREAM_ERROR", message, details)
