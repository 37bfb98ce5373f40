"""Dependency injection configuration for FastAPI app.

Uses FastAPI's app.state pattern for storing service instances.

Pattern:
    - Services stored in app.state during lifespan
    - Dependency functions retrieve from request.app.state
    - Clean separation, no global mutable state
"""

from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends, FastAPI, Request

from supacache.config import Settings, get_settings
from supacache.handlers import ProxyHandler
from supacache.logging import configure_logging, get_logger
from supacache.protocols import CacheStore
from supacache.repositories import HttpxUpstream, RedisCacheRepository, SqlCacheRepository
from supacache.services import CacheService

logger = get_logger("supacache.api")


def get_handler(request: Request) -> ProxyHandler:
    """Dependency injection for ProxyHandler from app.state.

    Args:
        request: FastAPI Request object

    Returns:
        The ProxyHandler instance from app.state

    Raises:
        RuntimeError: If handler is not initialized
    """
    handler = getattr(request.app.state, "proxy_handler", None)
    if handler is None:
        raise RuntimeError("ProxyHandler not initialized. Check lifespan setup.")
    return handler


def build_store(settings: Settings) -> CacheStore:
    """Create the cache store selected by CACHE_STORE_URL.

    Args:
        settings: Process configuration

    Returns:
        A Redis store for redis:// URLs, an SQL store otherwise
    """
    if settings.uses_redis:
        return RedisCacheRepository.create(settings.store_url, prefix=settings.table_name)
    return SqlCacheRepository.create(settings.store_url, table_name=settings.table_name)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for FastAPI app.

    Initializes all layers and stores them in app.state:
    1. Store and upstream client (data access)
    2. Service (business logic) - app.state.cache_service
    3. Handler (HTTP endpoints) - app.state.proxy_handler

    A handler already placed on app.state (see create_app) is left alone,
    and only what this lifespan built is closed on shutdown.
    """
    if getattr(app.state, "proxy_handler", None) is not None:
        yield
        return

    settings: Settings = getattr(app.state, "settings", None) or get_settings()
    configure_logging(settings.log_level)

    store = build_store(settings)
    upstream = HttpxUpstream.create(timeout=settings.upstream_timeout)
    try:
        cache_service = CacheService.create(settings=settings, store=store, upstream=upstream)
    except Exception:
        await upstream.close()
        store.close()
        raise

    app.state.cache_service = cache_service
    app.state.proxy_handler = ProxyHandler(cache_service=cache_service)

    logger.info(
        "service.started",
        upstream_url=settings.upstream_url,
        store="redis" if settings.uses_redis else "sql",
        table=settings.table_name,
        default_ttl=settings.default_ttl,
        bypass_paths=list(settings.bypass_paths),
    )

    try:
        yield
    finally:
        await upstream.close()
        store.close()
        del app.state.proxy_handler
        del app.state.cache_service
        logger.info("service.stopped")


# Type alias for cleaner dependency injection
HandlerDep = Annotated[ProxyHandler, Depends(get_handler)]
