"""Cache entry domain entities."""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class CacheRecord:
    """A row as exchanged with a CacheStore backend.

    Nothing here is trusted on read: the body is still the encrypted
    envelope and the headers are raw JSON text. CacheEntryStore turns a
    record into a CacheEntryEntity through a validating decode step.

    Attributes:
        key: Cache key derived from the request URL
        body: UTF-8 bytes of the encryption envelope
        status: HTTP status of the original response
        headers: JSON array of [name, value] pairs
        expires_at: Instant after which the row is treated as absent
        created_at: Write time, informational only
    """

    key: str
    body: bytes
    status: int
    headers: str
    expires_at: datetime
    created_at: datetime | None = None


@dataclass(frozen=True)
class CacheEntryEntity:
    """Decoded cache entry.

    Attributes:
        key: Cache key derived from the request URL
        body: Plaintext response body
        status: HTTP status of the original response
        headers: Response headers captured at write time
        expires_at: Instant after which the entry is treated as absent
        created_at: Write time, informational only
    """

    key: str
    body: bytes
    status: int
    headers: list[tuple[str, str]]
    expires_at: datetime
    created_at: datetime | None = None
