"""Cache service for the read-through proxy flow.

This service orchestrates a request end to end by coordinating the
eligibility policy, the entry store and the upstream client:

    authorize -> bypass? -> lookup -> hit | fetch -> eligible? -> store
"""

import hmac
from collections.abc import Callable
from datetime import datetime

from fastapi.concurrency import run_in_threadpool

from supacache.codecs import AesGcmCipher, JsonCompressor
from supacache.config import Settings
from supacache.entities import CacheEntryEntity, ProxyRequest, ProxyResponse
from supacache.errors import AuthenticationError, UpstreamError
from supacache.logging import get_logger
from supacache.protocols import CacheStore, Upstream

from .entry_store import CacheEntryStore
from .keys import derive_cache_key
from .policy import EligibilityPolicy
from .upstream import (
    DEFAULT_TTL,
    SERVICE_KEY_HEADER,
    resolve_ttl,
    to_upstream_request,
    validate_upstream_url,
)

logger = get_logger("supacache.cache_service")


class CacheService:
    """Read-through cache in front of the upstream API.

    Cache reads and writes never fail a request: a broken read is a miss
    and a broken write is logged, and the upstream response is returned
    either way. Only authentication failures and upstream failures with
    no response in hand reach the caller.

    Example:
        ```python
        service = CacheService.create(
            settings=get_settings(),
            store=SqlCacheRepository.create(settings.store_url),
            upstream=HttpxUpstream.create(),
        )
        response = await service.handle(request)
        ```
    """

    def __init__(
        self,
        entries: CacheEntryStore,
        upstream: Upstream,
        policy: EligibilityPolicy,
        upstream_url: str,
        service_auth_key: str,
        default_ttl: int = DEFAULT_TTL,
    ) -> None:
        """Initialize the cache service.

        Args:
            entries: Encoded entry store (required).
            upstream: Upstream API client (required).
            policy: Eligibility rules (required).
            upstream_url: Base URL requests are rewritten to.
            service_auth_key: Secret every request must present.
            default_ttl: TTL in seconds when the request names none.
        """
        self._entries = entries
        self._upstream = upstream
        self._policy = policy
        self._upstream_url = upstream_url
        self._service_auth_key = service_auth_key
        self._default_ttl = default_ttl

    @classmethod
    def create(
        cls,
        settings: Settings,
        store: CacheStore,
        upstream: Upstream,
        clock: Callable[[], datetime] | None = None,
    ) -> "CacheService":
        """Factory method to wire a CacheService from settings.

        Args:
            settings: Process configuration.
            store: Persistence backend.
            upstream: Upstream API client.
            clock: Optional clock override for the entry store.

        Returns:
            Configured CacheService

        Raises:
            ValueError: If the upstream URL is not absolute or the encryption key has the wrong length
        """
        validate_upstream_url(settings.upstream_url)
        entries = CacheEntryStore(
            store=store,
            compressor=JsonCompressor(),
            cipher=AesGcmCipher.from_secret(settings.encryption_key),
            clock=clock,
        )
        return cls(
            entries=entries,
            upstream=upstream,
            policy=EligibilityPolicy(settings.bypass_paths),
            upstream_url=settings.upstream_url,
            service_auth_key=settings.service_auth_key,
            default_ttl=settings.default_ttl,
        )

    def authorize(self, request: ProxyRequest) -> None:
        """Check the service key on a request.

        Raises:
            AuthenticationError: If the key is missing or wrong, or no key is provisioned
        """
        provided = request.header(SERVICE_KEY_HEADER)
        if (
            not self._service_auth_key
            or provided is None
            or not hmac.compare_digest(provided.encode("utf-8"), self._service_auth_key.encode("utf-8"))
        ):
            raise AuthenticationError()

    async def handle(self, request: ProxyRequest) -> ProxyResponse:
        """Serve a request from cache or upstream.

        Args:
            request: The inbound request

        Returns:
            The cached or upstream response

        Raises:
            AuthenticationError: If the service key check fails
            UpstreamError: If upstream fails and there is nothing to return
        """
        self.authorize(request)

        if self._policy.is_bypass_route(request.url):
            logger.info("cache.bypass", url=request.url)
            return await self._fetch(request)

        cache_key = derive_cache_key(request.url)

        cached = await self._safe_lookup(cache_key)
        if cached is not None:
            logger.info("cache.hit", cache_key=cache_key)
            return ProxyResponse(status=cached.status, headers=cached.headers, body=cached.body)

        logger.info("cache.miss", cache_key=cache_key)
        response = await self._fetch(request)

        if self._policy.is_cacheable_response(request, response):
            await self._safe_store(cache_key, request, response)

        return response

    async def is_healthy(self) -> bool:
        """Check if the cache store is healthy."""
        return await run_in_threadpool(self._entries.health_check)

    async def _fetch(self, request: ProxyRequest) -> ProxyResponse:
        try:
            return await self._upstream.fetch(to_upstream_request(request, self._upstream_url))
        except UpstreamError:
            raise
        except Exception as e:
            raise UpstreamError(f"Upstream request failed: {e}") from e

    # Store calls are blocking I/O and run in the threadpool
    async def _safe_lookup(self, cache_key: str) -> CacheEntryEntity | None:
        try:
            return await run_in_threadpool(self._entries.lookup, cache_key)
        except Exception as e:
            logger.error("cache.lookup_failed", cache_key=cache_key, error=str(e))
            return None

    async def _safe_store(self, cache_key: str, request: ProxyRequest, response: ProxyResponse) -> None:
        ttl = resolve_ttl(request, self._default_ttl)
        try:
            entry = await run_in_threadpool(self._entries.store, cache_key, response, ttl)
        except Exception as e:
            logger.error("cache.store_failed", cache_key=cache_key, error=str(e))
            return
        logger.info("cache.stored", cache_key=cache_key, ttl=ttl, expires_at=entry.expires_at.isoformat())

