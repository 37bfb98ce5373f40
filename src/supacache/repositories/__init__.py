"""Repository layer for data access.

This layer hides external systems (SQL databases, Redis, the upstream
HTTP API) behind the protocols in supacache.protocols. The repositories
are protocol-based (structural typing), not inheritance-based.
"""

from supacache.protocols import CacheStore, Upstream

from .httpx_upstream import HttpxUpstream
from .redis_repository import RedisCacheRepository
from .sql_repository import SqlCacheRepository

__all__ = [
    "CacheStore",
    "Upstream",
    "HttpxUpstream",
    "RedisCacheRepository",
    "SqlCacheRepository",
]
