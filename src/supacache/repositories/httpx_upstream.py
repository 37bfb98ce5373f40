"""httpx-based upstream client.

Sends rewritten requests to the upstream API and reads each response
body in full, so the same bytes can be cached and returned.
"""

import httpx

from supacache.entities import ProxyRequest, ProxyResponse
from supacache.errors import UpstreamError


class HttpxUpstream:
    """httpx implementation of the Upstream protocol.

    Example:
        ```python
        upstream = HttpxUpstream.create(timeout=10.0)
        response = await upstream.fetch(
            ProxyRequest(method="GET", url="https://project.supabase.co/rest/v1/countries?select=*")
        )
        await upstream.close()
        ```
    """

    def __init__(self, client: httpx.AsyncClient | None = None, timeout: float = 30.0) -> None:
        """Initialize the upstream client.

        Args:
            client: Pre-built AsyncClient. If None, one is created lazily.
            timeout: Request timeout in seconds for the lazily created client.
        """
        self._client = client
        self._timeout = timeout

    @classmethod
    def create(cls, timeout: float = 30.0) -> "HttpxUpstream":
        """Factory method to create HttpxUpstream with defaults.

        Args:
            timeout: Request timeout in seconds.

        Returns:
            Configured HttpxUpstream
        """
        return cls(timeout=timeout)

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy-load the async HTTP client.

        Returns:
            The httpx.AsyncClient instance
        """
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                limits=httpx.Limits(max_connections=100, max_keepalive_connections=20),
            )
        return self._client

    async def fetch(self, request: ProxyRequest) -> ProxyResponse:
        """Send a request upstream.

        Args:
            request: The rewritten upstream request

        Returns:
            ProxyResponse with the fully read body

        Raises:
            UpstreamError: If the request fails before a response arrives
        """
        try:
            response = await self.client.request(
                request.method,
                request.url,
                headers=request.headers,
                content=request.body or None,
            )
        except httpx.HTTPError as e:
            raise UpstreamError(f"Upstream API error: {e}") from e

        return ProxyResponse(
            status=response.status_code,
            headers=list(response.headers.multi_items()),
            body=response.content,
        )

    async def close(self) -> None:
        """Close the async HTTP client.

        Should be called when shutting down the application.
        """
        if self._client is not None:
            await self._client.aclose()
            self._client = None
