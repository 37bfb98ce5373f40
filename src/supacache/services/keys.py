"""Cache key derivation."""

import hashlib


def derive_cache_key(url: str) -> str:
    """Derive the cache key for a request URL.

    The full URL, query string included, is hashed as-is. Query parameter
    order is not normalized, so reordered parameters map to different keys.

    Args:
        url: The inbound request URL

    Returns:
        64 character SHA-256 hex digest
    """
    return hashlib.sha256(url.encode("utf-8")).hexdigest()
