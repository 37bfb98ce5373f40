"""Upstream fetch protocol."""

from typing import Protocol, runtime_checkable

from supacache.entities import ProxyRequest, ProxyResponse


@runtime_checkable
class Upstream(Protocol):
    """Protocol for the client that talks to the upstream API."""

    async def fetch(self, request: ProxyRequest) -> ProxyResponse:
        """Send a request upstream and read the whole response.

        Args:
            request: The already rewritten upstream request

        Returns:
            The upstream response with its body fully read

        Raises:
            UpstreamError: If no response could be obtained
        """
        ...

    async def close(self) -> None:
        """Release connections held by the client."""
        ...
