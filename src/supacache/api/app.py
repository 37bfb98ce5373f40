from fastapi import FastAPI, Request, Response

from supacache.api.dependencies import HandlerDep, lifespan
from supacache.config import Settings, get_settings
from supacache.dto import HealthResponse
from supacache.handlers import ProxyHandler
from supacache.services import CacheService

PROXY_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]
HEALTH_PATH = "/_supacache/health"


def create_app(
    settings: Settings | None = None,
    cache_service: CacheService | None = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        settings: Configuration for the lifespan to wire from. Defaults to get_settings().
        cache_service: Pre-built service; when given, the lifespan builds nothing.

    Returns:
        The configured application
    """
    app = FastAPI(
        title="Supacache",
        description="Encrypted, compressed read-through cache for a Supabase-style REST API",
        version="0.1.0",
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.settings = settings

    if cache_service is not None:
        app.state.cache_service = cache_service
        app.state.proxy_handler = ProxyHandler(cache_service=cache_service)

    @app.get(HEALTH_PATH, response_model=HealthResponse)
    async def health(handler: HandlerDep) -> HealthResponse:
        """Health check endpoint."""
        return await handler.health_check()

    @app.api_route("/{path:path}", methods=PROXY_METHODS)
    async def proxy(request: Request, handler: HandlerDep) -> Response:
        """Proxy every other request through the cache."""
        return await handler.proxy(request)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "supacache.api.app:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
    )
