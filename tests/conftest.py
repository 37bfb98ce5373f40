"""
Shared fixtures for supacache tests.
"""

from datetime import datetime, timedelta, timezone

import pytest

from supacache.codecs import AesGcmCipher, JsonCompressor
from supacache.config import Settings
from supacache.entities import ProxyResponse
from supacache.errors import StoreError
from supacache.repositories import SqlCacheRepository
from supacache.services import CacheEntryStore, CacheService

ENCRYPTION_KEY = "0123456789abcdef0123456789abcdef"
SERVICE_KEY = "test-service-key"
UPSTREAM_URL = "https://project.supabase.co"


class FakeClock:
    """Settable clock returning aware UTC datetimes."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


class FakeUpstream:
    """Upstream double that records requests and returns a canned response."""

    def __init__(self, response: ProxyResponse | None = None) -> None:
        self.response = response or ProxyResponse(
            status=200,
            headers=[("content-type", "application/json"), ("content-length", "8")],
            body=b'{"id":1}',
        )
        self.error: Exception | None = None
        self.requests = []
        self.closed = False

    async def fetch(self, request):
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.response

    async def close(self) -> None:
        self.closed = True


class RecordingStore:
    """CacheStore wrapper counting backend calls."""

    def __init__(self, inner) -> None:
        self.inner = inner
        self.finds = 0
        self.upserts = 0

    def find_fresh(self, key, now):
        self.finds += 1
        return self.inner.find_fresh(key, now)

    def upsert(self, record) -> None:
        self.upserts += 1
        self.inner.upsert(record)

    def health_check(self) -> bool:
        return self.inner.health_check()


class FailingStore:
    """CacheStore whose backend is unreachable."""

    def find_fresh(self, key, now):
        raise StoreError("connection refused")

    def upsert(self, record) -> None:
        raise StoreError("connection refused")

    def health_check(self) -> bool:
        return False


class FakeRedis:
    """Minimal in-memory stand-in for the redis-py calls the repository makes."""

    def __init__(self) -> None:
        self.hashes: dict[str, dict[bytes, bytes]] = {}

    def hgetall(self, key):
        return dict(self.hashes.get(key, {}))

    def pipeline(self, transaction=True):
        return FakePipeline(self)

    def ping(self):
        return True

    def close(self) -> None:
        pass


class FakePipeline:
    def __init__(self, client: FakeRedis) -> None:
        self._client = client
        self._ops = []

    def delete(self, key):
        self._ops.append(("delete", key, None))

    def hset(self, key, mapping):
        self._ops.append(("hset", key, mapping))

    def execute(self):
        for op, key, mapping in self._ops:
            if op == "delete":
                self._client.hashes.pop(key, None)
            else:
                stored = self._client.hashes.setdefault(key, {})
                for field, value in mapping.items():
                    stored[field.encode()] = value if isinstance(value, bytes) else str(value).encode()
        self._ops = []


@pytest.fixture
def settings():
    """Settings for tests, independent of the environment."""
    return Settings(
        upstream_url=UPSTREAM_URL,
        service_auth_key=SERVICE_KEY,
        encryption_key=ENCRYPTION_KEY,
        store_url="sqlite://",
        table_name="SUPACACHE",
        default_ttl=900,
        bypass_paths=("/realtime/", "/subscriptions/"),
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sql_repository():
    repository = SqlCacheRepository.create("sqlite://")
    yield repository
    repository.close()


@pytest.fixture
def recording_store(sql_repository):
    return RecordingStore(sql_repository)


@pytest.fixture
def cipher():
    return AesGcmCipher.from_secret(ENCRYPTION_KEY)


@pytest.fixture
def entry_store(sql_repository, cipher, clock):
    return CacheEntryStore(
        store=sql_repository,
        compressor=JsonCompressor(),
        cipher=cipher,
        clock=clock,
    )


@pytest.fixture
def upstream():
    return FakeUpstream()


@pytest.fixture
def cache_service(settings, recording_store, upstream, clock):
    return CacheService.create(
        settings=settings,
        store=recording_store,
        upstream=upstream,
        clock=clock,
    )
