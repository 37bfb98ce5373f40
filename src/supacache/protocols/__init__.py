"""Protocol interfaces for swappable implementations.

This package contains protocol definitions using structural typing.
Protocols enable:
- Easy swapping of implementations (SQL -> Redis, httpx -> test doubles)
- Unit testing with in-memory implementations
- Clear separation of concerns

Usage:
    ```python
    from supacache.protocols import CacheStore, Upstream

    store: CacheStore = SqlCacheRepository.create("sqlite:///supacache.db")
    store: CacheStore = RedisCacheRepository.create("redis://localhost:6379")
    ```
"""

from .cache_store import CacheStore
from .upstream import Upstream

__all__ = [
    "CacheStore",
    "Upstream",
]
