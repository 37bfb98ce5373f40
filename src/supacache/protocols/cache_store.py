"""Cache storage protocol.

Defines the persistence capability the store adapter relies on: a keyed
lookup that applies the expiry predicate, and an atomic insert-or-replace.

Implementations:
- SQL databases through SQLAlchemy (default)
- Redis
"""

from datetime import datetime
from typing import Protocol, runtime_checkable

from supacache.entities import CacheRecord


@runtime_checkable
class CacheStore(Protocol):
    """Protocol for cache storage backends.

    Any type that implements these methods satisfies the protocol,
    no explicit inheritance needed.
    """

    def find_fresh(self, key: str, now: datetime) -> CacheRecord | None:
        """Find the row for a key if it has not expired.

        Args:
            key: The cache key
            now: Current instant; rows with expires_at <= now are ignored

        Returns:
            The stored record, or None when absent or expired

        Raises:
            StoreError: If the backend cannot be queried
        """
        ...

    def upsert(self, record: CacheRecord) -> None:
        """Insert a record, fully replacing any row with the same key.

        Args:
            record: The record to write

        Raises:
            StoreError: If the backend rejects the write
        """
        ...

    def health_check(self) -> bool:
        """Check if the backend is reachable.

        Returns:
            True if healthy, False otherwise
        """
        ...
