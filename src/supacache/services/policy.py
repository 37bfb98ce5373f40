"""Cache eligibility rules."""

from urllib.parse import urlsplit

from supacache.entities import ProxyRequest, ProxyResponse

DEFAULT_BYPASS_PATHS = (
    "/realtime/",  # real-time endpoints
    "/subscriptions/",  # subscription endpoints
)
CACHEABLE_METHODS = ("GET", "HEAD")


class EligibilityPolicy:
    """Decides whether a request may touch the cache at all and whether
    an upstream response may be stored.

    Both checks are pure functions of their inputs.
    """

    def __init__(self, bypass_paths: tuple[str, ...] = DEFAULT_BYPASS_PATHS) -> None:
        """Initialize the policy.

        Args:
            bypass_paths: Path fragments that always skip the cache.
        """
        self._bypass_paths = tuple(bypass_paths)

    def is_bypass_route(self, url: str) -> bool:
        """Check if the URL path contains a bypass fragment.

        Args:
            url: The inbound request URL

        Returns:
            True if the request must be proxied without any cache read or write
        """
        path = urlsplit(url).path
        return any(fragment in path for fragment in self._bypass_paths)

    def is_cacheable_response(self, request: ProxyRequest, response: ProxyResponse) -> bool:
        """Check if an upstream response may be stored.

        Args:
            request: The inbound request
            response: The upstream response

        Returns:
            True only if every rule passes
        """
        if not response.ok or not 200 <= response.status <= 299:
            return False

        cache_control = response.header("cache-control") or ""
        if "no-store" in cache_control.lower():
            return False

        if request.method not in CACHEABLE_METHODS:
            return False

        # REST queries are only reads when they carry a select parameter
        if "/rest/" in request.url and not _has_select(request.url):
            return False

        return True


def _has_select(url: str) -> bool:
    return "?select=" in url or "&select=" in url
