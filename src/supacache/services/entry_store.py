"""TTL-aware cache entry store.

Sits between the orchestrator and a CacheStore backend and owns the codec
chain: bodies are compressed then encrypted on write, decrypted then
decompressed on read. Nothing reaches the backend in plaintext.
"""

import json
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from supacache.codecs import AesGcmCipher, JsonCompressor
from supacache.entities import CacheEntryEntity, CacheRecord, ProxyResponse
from supacache.errors import DecodeError, EncodeError
from supacache.logging import get_logger
from supacache.protocols import CacheStore

logger = get_logger("supacache.entry_store")


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class CacheEntryStore:
    """Reads and writes encoded cache entries.

    Example:
        ```python
        entries = CacheEntryStore(
            store=SqlCacheRepository.create("sqlite:///supacache.db"),
            compressor=JsonCompressor(),
            cipher=AesGcmCipher.from_secret(settings.encryption_key),
        )
        entries.store(key, response, ttl_seconds=30)
        entry = entries.lookup(key)
        ```
    """

    def __init__(
        self,
        store: CacheStore,
        compressor: JsonCompressor,
        cipher: AesGcmCipher,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the entry store.

        Args:
            store: Persistence backend (required).
            compressor: Compression codec (required).
            cipher: Encryption codec (required).
            clock: Returns the current aware UTC time. Defaults to utc_now.
        """
        self._store = store
        self._compressor = compressor
        self._cipher = cipher
        self._clock = clock or utc_now

    def lookup(self, key: str) -> CacheEntryEntity | None:
        """Look up a fresh entry.

        Expired rows and rows that fail to decode are both misses; decode
        failures are logged.

        Args:
            key: The cache key

        Returns:
            The decoded entry, or None on a miss

        Raises:
            StoreError: If the backend cannot be queried
        """
        try:
            record = self._store.find_fresh(key, self._clock())
            if record is None:
                return None
            return self._decode(record)
        except DecodeError as e:
            logger.warning("cache.decode_failed", cache_key=key, error=str(e))
            return None

    def store(self, key: str, response: ProxyResponse, ttl_seconds: int) -> CacheEntryEntity:
        """Encode a response and write it under a key.

        Args:
            key: The cache key
            response: The upstream response to cache
            ttl_seconds: Seconds until the entry expires

        Returns:
            The entry as written

        Raises:
            EncodeError: If the body is not JSON
            StoreError: If the backend rejects the write
        """
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")

        now = self._clock()
        expires_at = now + timedelta(seconds=ttl_seconds)
        headers = list(response.headers)

        record = CacheRecord(
            key=key,
            body=self._encode_body(response.body),
            status=response.status,
            headers=json.dumps([[name, value] for name, value in headers]),
            expires_at=expires_at,
            created_at=now,
        )
        self._store.upsert(record)

        return CacheEntryEntity(
            key=key,
            body=response.body,
            status=response.status,
            headers=headers,
            expires_at=expires_at,
            created_at=now,
        )

    def health_check(self) -> bool:
        """Check if the backend is healthy."""
        return self._store.health_check()

    def _encode_body(self, body: bytes) -> bytes:
        try:
            value = json.loads(body)
        except ValueError as e:
            raise EncodeError(f"Response body is not JSON: {e}") from e

        packed = self._compressor.compress(value)
        return self._cipher.encrypt(packed).encode("ascii")

    def _decode(self, record: CacheRecord) -> CacheEntryEntity:
        """Validate a raw record and decode its body."""
        if not isinstance(record.body, (bytes, bytearray, memoryview)):
            raise DecodeError("Stored body is not binary")

        if isinstance(record.status, bool) or not isinstance(record.status, int):
            raise DecodeError("Stored status is not an integer")
        if not 100 <= record.status <= 599:
            raise DecodeError(f"Stored status {record.status} is not an HTTP status")

        if not isinstance(record.expires_at, datetime):
            raise DecodeError("Stored expiry is not a timestamp")

        headers = self._decode_headers(record.headers)

        try:
            packed = self._cipher.decrypt(bytes(record.body)).decode("ascii")
        except UnicodeDecodeError as e:
            raise DecodeError("Decrypted body is not compressor output") from e
        value = self._compressor.decompress(packed)
        body = json.dumps(value, ensure_ascii=False, separators=(",", ":")).encode("utf-8")

        return CacheEntryEntity(
            key=record.key,
            body=body,
            status=record.status,
            headers=headers,
            expires_at=record.expires_at,
            created_at=record.created_at,
        )

    @staticmethod
    def _decode_headers(raw: str) -> list[tuple[str, str]]:
        try:
            pairs = json.loads(raw)
        except (TypeError, ValueError) as e:
            raise DecodeError(f"Stored headers are not JSON: {e}") from e

        if not isinstance(pairs, list):
            raise DecodeError("Stored headers are not a list")

        headers = []
        for pair in pairs:
            if (
                not isinstance(pair, list)
                or len(pair) != 2
                or not all(isinstance(part, str) for part in pair)
            ):
                raise DecodeError("Stored headers must be [name, value] string pairs")
            headers.append((pair[0], pair[1]))
        return headers
