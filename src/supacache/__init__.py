"""Supacache - encrypted, compressed read-through cache for a REST data API.

This package provides a layered architecture for response caching:

Layers:
    - protocols: Interface contracts (CacheStore, Upstream)
    - repositories: Data access implementations (SQL, Redis, httpx)
    - codecs: Compression and encryption of cached bodies
    - services: Eligibility, key derivation, entry store, orchestration
    - handlers: HTTP endpoint handlers
    - dto: Data transfer objects (API contracts)
    - entities: Domain models (internal)

Usage:
    ```python
    from supacache.config import get_settings
    from supacache.repositories import HttpxUpstream, SqlCacheRepository
    from supacache.services import CacheService

    settings = get_settings()
    service = CacheService.create(
        settings=settings,
        store=SqlCacheRepository.create(settings.store_url),
        upstream=HttpxUpstream.create(),
    )
    ```

For HTTP API:
    ```python
    from supacache.api.app import app
    ```
"""

from supacache.codecs import AesGcmCipher, JsonCompressor
from supacache.config import Settings, get_settings
from supacache.entities import CacheEntryEntity, CacheRecord, ProxyRequest, ProxyResponse
from supacache.errors import (
    AuthenticationError,
    CodecError,
    DecodeError,
    EncodeError,
    StoreError,
    SupacacheError,
    UpstreamError,
)
from supacache.handlers import ProxyHandler
from supacache.protocols import CacheStore, Upstream
from supacache.repositories import HttpxUpstream, RedisCacheRepository, SqlCacheRepository
from supacache.services import CacheEntryStore, CacheService, EligibilityPolicy, derive_cache_key

__all__ = [
    # Configuration
    "Settings",
    "get_settings",
    # Protocols (interfaces)
    "CacheStore",
    "Upstream",
    # Codecs
    "AesGcmCipher",
    "JsonCompressor",
    # Services (business logic)
    "CacheService",
    "CacheEntryStore",
    "EligibilityPolicy",
    "derive_cache_key",
    # Handlers (HTTP)
    "ProxyHandler",
    # Repositories (data access)
    "HttpxUpstream",
    "RedisCacheRepository",
    "SqlCacheRepository",
    # Entities (domain models)
    "CacheEntryEntity",
    "CacheRecord",
    "ProxyRequest",
    "ProxyResponse",
    # Errors
    "SupacacheError",
    "AuthenticationError",
    "CodecError",
    "DecodeError",
    "EncodeError",
    "StoreError",
    "UpstreamError",
]
