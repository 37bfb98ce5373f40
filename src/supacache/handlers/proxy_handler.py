"""HTTP handler for proxied requests.

Converts between Starlette requests/responses and the proxy entities, and
maps the errors that may reach the caller onto HTTP status codes.
"""

from fastapi import HTTPException, Request, Response, status

from supacache.dto import HealthResponse
from supacache.entities import ProxyRequest, ProxyResponse
from supacache.errors import AuthenticationError, UpstreamError
from supacache.logging import clear_request_id, get_logger, set_request_id
from supacache.services import CacheService

logger = get_logger("supacache.proxy_handler")

# Hop-by-hop headers plus the ones describing a body encoding we no longer send
EXCLUDED_RESPONSE_HEADERS = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailers",
        "transfer-encoding",
        "upgrade",
        "content-length",
        "content-encoding",
    }
)


def _encode_header(value: str) -> bytes:
    try:
        return value.encode("latin-1")
    except UnicodeEncodeError:
        return value.encode("utf-8")


class ProxyHandler:
    """HTTP handler for the catch-all proxy route.

    Example:
        ```python
        handler = ProxyHandler(cache_service=cache_service)

        @app.api_route("/{path:path}", methods=PROXY_METHODS)
        async def proxy(request: Request) -> Response:
            return await handler.proxy(request)
        ```
    """

    def __init__(self, cache_service: CacheService) -> None:
        """Initialize the proxy handler.

        Args:
            cache_service: The cache service for business logic (required).
        """
        self._cache = cache_service

    async def proxy(self, request: Request) -> Response:
        """Handle any proxied request.

        Args:
            request: The inbound Starlette request

        Returns:
            The cached or upstream response

        Raises:
            HTTPException: 401 on a bad service key, 500 when upstream fails
        """
        set_request_id(request.headers.get("x-request-id"))
        try:
            proxy_request = await self._to_proxy_request(request)

            try:
                result = await self._cache.handle(proxy_request)
            except AuthenticationError as e:
                logger.warning("request.unauthorized", method=request.method, path=request.url.path)
                raise HTTPException(
                    status_code=status.HTTP_401_UNAUTHORIZED,
                    detail="Unauthorized",
                ) from e
            except UpstreamError as e:
                logger.error("request.upstream_failed", method=request.method, path=request.url.path, error=str(e))
                raise HTTPException(
                    status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                    detail="Internal Server Error",
                ) from e

            return self._to_response(result)
        finally:
            clear_request_id()

    async def health_check(self) -> HealthResponse:
        """Handle GET /_supacache/health requests.

        Returns:
            HealthResponse with store status
        """
        try:
            is_healthy = await self._cache.is_healthy()
        except Exception as e:
            logger.error("health.check_failed", error=str(e))
            is_healthy = False

        return HealthResponse(
            status="healthy" if is_healthy else "unhealthy",
            store_healthy=is_healthy,
        )

    @staticmethod
    async def _to_proxy_request(request: Request) -> ProxyRequest:
        headers = [
            (name.decode("latin-1"), value.decode("latin-1"))
            for name, value in request.headers.raw
        ]
        return ProxyRequest(
            method=request.method.upper(),
            url=str(request.url),
            headers=headers,
            body=await request.body(),
        )

    @staticmethod
    def _to_response(result: ProxyResponse) -> Response:
        response = Response(content=result.body, status_code=result.status)
        for name, value in result.headers:
            if name.lower() in EXCLUDED_RESPONSE_HEADERS:
                continue
            response.raw_headers.append((name.lower().encode("latin-1"), _encode_header(value)))
        return response
