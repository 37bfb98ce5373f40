"""
Tests for the read-through cache orchestration.
"""

import asyncio
import threading
from dataclasses import replace

import pytest

from conftest import SERVICE_KEY, FailingStore, FakeUpstream
from supacache.entities import ProxyRequest, ProxyResponse
from supacache.errors import AuthenticationError, UpstreamError
from supacache.services import CacheService, derive_cache_key

URL = "http://cache.local/rest/v1/countries?select=*"


def _request(method="GET", url=URL, headers=None, key=SERVICE_KEY):
    base = [("x-cache-service-key", key)] if key is not None else []
    return ProxyRequest(method=method, url=url, headers=base + (headers or []), body=b"")


@pytest.mark.asyncio
async def test_miss_then_hit(cache_service, upstream, recording_store, clock):
    """First call fetches and stores; second call is served from cache."""
    first = await cache_service.handle(_request(headers=[("x-ttl", "30")]))

    assert first.status == 200
    assert first.body == b'{"id":1}'
    assert len(upstream.requests) == 1
    assert recording_store.upserts == 1

    record = recording_store.inner.find_fresh(derive_cache_key(URL), clock.now)
    assert (record.expires_at - clock.now).total_seconds() == 30

    clock.advance(10)
    second = await cache_service.handle(_request(headers=[("x-ttl", "30")]))

    assert second.status == 200
    assert second.body == b'{"id":1}'
    assert ("content-type", "application/json") in second.headers
    assert len(upstream.requests) == 1


@pytest.mark.asyncio
async def test_expired_entry_refetches(cache_service, upstream, clock):
    await cache_service.handle(_request(headers=[("x-ttl", "30")]))
    clock.advance(31)
    await cache_service.handle(_request())

    assert len(upstream.requests) == 2


@pytest.mark.asyncio
async def test_default_ttl(cache_service, recording_store, clock):
    await cache_service.handle(_request())

    record = recording_store.inner.find_fresh(derive_cache_key(URL), clock.now)
    assert (record.expires_at - clock.now).total_seconds() == 900


@pytest.mark.asyncio
async def test_upstream_request_is_rewritten(cache_service, upstream):
    await cache_service.handle(_request(headers=[("x-ttl", "30"), ("apikey", "anon")]))

    sent = upstream.requests[0]
    assert sent.url == "https://project.supabase.co/rest/v1/countries?select=*"
    assert sent.header("x-cache-service-key") is None
    assert sent.header("x-ttl") is None
    assert sent.header("apikey") == "anon"


@pytest.mark.asyncio
@pytest.mark.parametrize("method", ["GET", "POST", "DELETE"])
async def test_bypass_route_never_touches_store(cache_service, upstream, recording_store, method):
    url = "http://cache.local/realtime/v1/channels?select=*"

    for _ in range(2):
        response = await cache_service.handle(_request(method=method, url=url, headers=[("x-ttl", "30")]))
        assert response.body == b'{"id":1}'

    assert len(upstream.requests) == 2
    assert recording_store.finds == 0
    assert recording_store.upserts == 0


@pytest.mark.asyncio
async def test_post_is_not_stored(cache_service, upstream, recording_store):
    await cache_service.handle(_request(method="POST"))
    await cache_service.handle(_request(method="POST"))

    assert recording_store.upserts == 0
    assert len(upstream.requests) == 2


@pytest.mark.asyncio
async def test_no_store_response_is_not_stored(cache_service, upstream, recording_store):
    upstream.response = ProxyResponse(
        status=200,
        headers=[("cache-control", "no-store")],
        body=b'{"id":1}',
    )
    response = await cache_service.handle(_request())

    assert response.body == b'{"id":1}'
    assert recording_store.upserts == 0


@pytest.mark.asyncio
async def test_error_response_is_returned_not_stored(cache_service, upstream, recording_store):
    upstream.response = ProxyResponse(status=404, headers=[], body=b'{"message":"not found"}')
    response = await cache_service.handle(_request())

    assert response.status == 404
    assert response.body == b'{"message":"not found"}'
    assert recording_store.upserts == 0


@pytest.mark.asyncio
async def test_rest_query_without_select_is_not_stored(cache_service, recording_store):
    await cache_service.handle(_request(url="http://cache.local/rest/v1/countries?id=eq.1"))
    assert recording_store.upserts == 0


@pytest.mark.asyncio
async def test_non_json_body_is_returned_uncached(cache_service, upstream, recording_store):
    upstream.response = ProxyResponse(status=200, headers=[("content-type", "text/csv")], body=b"id\n1\n")

    first = await cache_service.handle(_request())
    second = await cache_service.handle(_request())

    assert first.body == b"id\n1\n"
    assert second.body == b"id\n1\n"
    assert recording_store.upserts == 0
    assert len(upstream.requests) == 2


@pytest.mark.asyncio
@pytest.mark.parametrize("key", [None, "", "wrong-key", SERVICE_KEY + "x"])
async def test_bad_service_key_is_rejected_before_anything(cache_service, upstream, recording_store, key):
    with pytest.raises(AuthenticationError):
        await cache_service.handle(_request(key=key))

    assert upstream.requests == []
    assert recording_store.finds == 0
    assert recording_store.upserts == 0


@pytest.mark.asyncio
async def test_bypass_route_still_requires_key(cache_service, upstream):
    with pytest.raises(AuthenticationError):
        await cache_service.handle(_request(url="http://cache.local/realtime/v1/x", key="nope"))
    assert upstream.requests == []


@pytest.mark.asyncio
async def test_unprovisioned_key_rejects_everything(settings, recording_store, upstream):
    service = CacheService.create(
        settings=replace(settings, service_auth_key=""),
        store=recording_store,
        upstream=upstream,
    )
    with pytest.raises(AuthenticationError):
        await service.handle(_request(key=""))


@pytest.mark.asyncio
async def test_store_outage_falls_back_to_upstream(settings, upstream, clock):
    service = CacheService.create(settings=settings, store=FailingStore(), upstream=upstream, clock=clock)

    response = await service.handle(_request())

    assert response.status == 200
    assert response.body == b'{"id":1}'
    assert len(upstream.requests) == 1


@pytest.mark.asyncio
async def test_corrupt_entry_falls_back_to_upstream(cache_service, upstream, recording_store):
    await cache_service.handle(_request())

    repository = recording_store.inner
    table = repository.table
    with repository.engine.begin() as conn:
        conn.execute(table.update().values(body=b"tampered"))

    response = await cache_service.handle(_request())

    assert response.body == b'{"id":1}'
    assert len(upstream.requests) == 2
    # the fresh fetch overwrites the corrupt row
    assert recording_store.upserts == 2


@pytest.mark.asyncio
async def test_upstream_failure_is_surfaced(cache_service, upstream, recording_store):
    upstream.error = UpstreamError("connection reset")

    with pytest.raises(UpstreamError):
        await cache_service.handle(_request())
    assert recording_store.upserts == 0


@pytest.mark.asyncio
async def test_unexpected_upstream_exception_is_wrapped(cache_service, upstream):
    upstream.error = RuntimeError("boom")

    with pytest.raises(UpstreamError):
        await cache_service.handle(_request())


@pytest.mark.asyncio
async def test_upstream_failure_is_not_retried(cache_service, upstream):
    upstream.error = UpstreamError("timeout")

    with pytest.raises(UpstreamError):
        await cache_service.handle(_request())
    assert len(upstream.requests) == 1


@pytest.mark.asyncio
async def test_is_healthy(cache_service, settings):
    assert await cache_service.is_healthy() is True

    broken = CacheService.create(settings=settings, store=FailingStore(), upstream=FakeUpstream())
    assert await broken.is_healthy() is False


class BlockingStore:
    """Store whose reads block their thread until released."""

    def __init__(self) -> None:
        self.entered = threading.Event()
        self.release = threading.Event()
        self.released_in_time = None

    def find_fresh(self, key, now):
        self.entered.set()
        self.released_in_time = self.release.wait(timeout=5)
        return None

    def upsert(self, record) -> None:
        pass

    def health_check(self) -> bool:
        return True


@pytest.mark.asyncio
async def test_slow_store_does_not_block_other_requests(settings, upstream):
    store = BlockingStore()
    service = CacheService.create(settings=settings, store=store, upstream=upstream)

    cached_read = asyncio.create_task(service.handle(_request()))
    for _ in range(500):
        if store.entered.is_set():
            break
        await asyncio.sleep(0.01)
    assert store.entered.is_set()

    # the bypass route completes while the store read is still blocked
    await service.handle(_request(url="http://cache.local/realtime/v1/channels"))
    store.release.set()
    response = await cached_read

    assert store.released_in_time is True
    assert response.status == 200
    assert len(upstream.requests) == 2


@pytest.mark.parametrize("upstream_url", ["", "project.supabase.co", "/rest/v1"])
def test_create_rejects_relative_upstream_url(settings, recording_store, upstream, upstream_url):
    with pytest.raises(ValueError):
        CacheService.create(
            settings=replace(settings, upstream_url=upstream_url),
            store=recording_store,
            upstream=upstream,
        )
