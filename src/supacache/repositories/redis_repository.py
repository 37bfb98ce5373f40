"""Redis implementation of CacheStore.

Each record is a hash under ``<prefix>:<key>``. Keys are written without
a Redis TTL: expiry is decided on read from the stored ``expires`` field,
same as the SQL backend.
"""

from datetime import datetime, timezone

import redis

from supacache.entities import CacheRecord
from supacache.errors import DecodeError, StoreError


class RedisCacheRepository:
    """Redis implementation of the CacheStore protocol.

    This class satisfies the CacheStore protocol through structural
    typing - no explicit inheritance needed.
    """

    def __init__(self, redis_client: redis.Redis, prefix: str = "SUPACACHE") -> None:
        """Initialize the Redis cache repository.

        Args:
            redis_client: Redis client instance (decode_responses=False).
            prefix: Key prefix, normally the cache table name.
        """
        self._client = redis_client
        self._prefix = prefix

    @classmethod
    def create(cls, url: str, prefix: str = "SUPACACHE") -> "RedisCacheRepository":
        """Factory method to create RedisCacheRepository from a URL.

        Args:
            url: Redis connection URL.
            prefix: Key prefix. Defaults to the standard table name.

        Returns:
            Configured RedisCacheRepository
        """
        return cls(redis.from_url(url, decode_responses=False), prefix=prefix)

    def _redis_key(self, key: str) -> str:
        return f"{self._prefix}:{key}"

    def find_fresh(self, key: str, now: datetime) -> CacheRecord | None:
        """Find an unexpired entry by key.

        Args:
            key: The cache key
            now: Current instant

        Returns:
            The stored record, or None when absent or expired
        """
        try:
            raw = self._client.hgetall(self._redis_key(key))
        except redis.RedisError as e:
            raise StoreError(f"Cache lookup failed: {e}") from e

        if not raw:
            return None

        try:
            expires = float(raw[b"expires"])
            status = int(raw[b"status"])
            headers = raw[b"headers"].decode("utf-8")
            body = raw[b"body"]
            created = float(raw[b"created_at"]) if b"created_at" in raw else None
        except (KeyError, ValueError) as e:
            raise DecodeError(f"Malformed cache hash for key {key}: {e}") from e

        if expires <= now.timestamp():
            return None

        return CacheRecord(
            key=key,
            body=body,
            status=status,
            headers=headers,
            expires_at=datetime.fromtimestamp(expires, tz=timezone.utc),
            created_at=datetime.fromtimestamp(created, tz=timezone.utc) if created is not None else None,
        )

    def upsert(self, record: CacheRecord) -> None:
        """Replace the hash for a key in one MULTI/EXEC transaction.

        Args:
            record: The record to write
        """
        mapping = {
            "body": record.body,
            "status": str(record.status),
            "headers": record.headers,
            "expires": repr(record.expires_at.timestamp()),
        }
        if record.created_at is not None:
            mapping["created_at"] = repr(record.created_at.timestamp())

        redis_key = self._redis_key(record.key)
        try:
            pipe = self._client.pipeline(transaction=True)
            pipe.delete(redis_key)
            pipe.hset(redis_key, mapping=mapping)
            pipe.execute()
        except redis.RedisError as e:
            raise StoreError(f"Cache write failed: {e}") from e

    def health_check(self) -> bool:
        """Check if Redis is accessible.

        Returns:
            True if healthy, False otherwise
        """
        try:
            return bool(self._client.ping())
        except redis.RedisError:
            return False

    def close(self) -> None:
        """Close the Redis connection pool."""
        self._client.close()

    @property
    def client(self) -> redis.Redis:
        """Get the Redis client."""
        return self._client
