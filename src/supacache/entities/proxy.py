"""Request and response entities passed through the proxy."""

from dataclasses import dataclass, field


def _first_header(headers: list[tuple[str, str]], name: str) -> str | None:
    lowered = name.lower()
    for key, value in headers:
        if key.lower() == lowered:
            return value
    return None


@dataclass(frozen=True)
class ProxyRequest:
    """An inbound request, or its rewritten upstream form.

    Attributes:
        method: HTTP method, upper case
        url: Absolute URL including query string
        headers: Header pairs in arrival order
        body: Raw request body
    """

    method: str
    url: str
    headers: list[tuple[str, str]] = field(default_factory=list)
    body: bytes = b""

    def header(self, name: str) -> str | None:
        """Get the first value of a header, case-insensitively."""
        return _first_header(self.headers, name)


@dataclass(frozen=True)
class ProxyResponse:
    """A response from upstream or rebuilt from a cache entry.

    Attributes:
        status: HTTP status code
        headers: Header pairs; repeated names are kept
        body: Fully read response body
    """

    status: int
    headers: list[tuple[str, str]] = field(default_factory=list)
    body: bytes = b""

    @property
    def ok(self) -> bool:
        """True when the status is below 400."""
        return self.status < 400

    def header(self, name: str) -> str | None:
        """Get the first value of a header, case-insensitively."""
        return _first_header(self.headers, name)
