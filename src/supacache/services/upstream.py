"""Pure helpers for the upstream hop: request rewriting and TTL resolution."""

import re
from urllib.parse import urlsplit, urlunsplit

from supacache.entities import ProxyRequest

SERVICE_KEY_HEADER = "x-cache-service-key"
TTL_HEADER = "x-ttl"
DEFAULT_TTL = 900  # 15 minutes

# Encodings the upstream client always decodes; bodies are cached and served decoded
UPSTREAM_ACCEPT_ENCODING = "gzip, deflate"

# Headers that only make sense between the client and this service
_STRIPPED_HEADERS = frozenset({SERVICE_KEY_HEADER, TTL_HEADER, "host", "accept-encoding"})
_MAX_AGE_RE = re.compile(r"(?:^|[\s,])max-age=(\d+)", re.IGNORECASE)
_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")


def validate_upstream_url(upstream_url: str) -> str:
    """Check that the upstream base URL is absolute.

    Args:
        upstream_url: Base URL of the upstream API

    Returns:
        The URL unchanged

    Raises:
        ValueError: If the URL has no scheme or host
    """
    upstream = urlsplit(upstream_url)
    if not upstream.scheme or not upstream.netloc:
        raise ValueError(f"UPSTREAM_URL must be an absolute URL, got {upstream_url!r}")
    return upstream_url


def to_upstream_request(request: ProxyRequest, upstream_url: str) -> ProxyRequest:
    """Rewrite an inbound request for the upstream API.

    The scheme and host are taken from the upstream URL while the path and
    query string are kept. Cache control headers and Host are dropped, and
    the client's Accept-Encoding is replaced with the encodings the upstream
    client can decode.

    Args:
        request: The inbound request
        upstream_url: Base URL of the upstream API

    Returns:
        A new ProxyRequest aimed at upstream
    """
    upstream = urlsplit(validate_upstream_url(upstream_url))
    inbound = urlsplit(request.url)
    url = urlunsplit((upstream.scheme, upstream.netloc, inbound.path, inbound.query, ""))

    headers = [
        (name, value)
        for name, value in request.headers
        if name.lower() not in _STRIPPED_HEADERS
    ]
    headers.append(("accept-encoding", UPSTREAM_ACCEPT_ENCODING))

    return ProxyRequest(method=request.method, url=url, headers=headers, body=request.body)


def resolve_ttl(request: ProxyRequest, default_ttl: int = DEFAULT_TTL) -> int:
    """Resolve the TTL for a new cache entry from request headers.

    X-TTL wins when present. Its leading integer is used, so ``30s`` means
    30; a value without one, or one that is not positive, falls back to the
    default rather than to Cache-Control. Without X-TTL, a ``max-age``
    directive in Cache-Control is used.

    Args:
        request: The inbound request
        default_ttl: TTL in seconds when no header applies

    Returns:
        TTL in seconds, always positive
    """
    ttl_header = request.header(TTL_HEADER)
    if ttl_header:
        return _positive_int(ttl_header, default_ttl)

    cache_control = request.header("cache-control")
    if cache_control:
        match = _MAX_AGE_RE.search(cache_control)
        if match:
            return _positive_int(match.group(1), default_ttl)

    return default_ttl


def _positive_int(value: str, default: int) -> int:
    match = _LEADING_INT_RE.match(value)
    if not match:
        return default
    parsed = int(match.group(1))
    return parsed if parsed > 0 else default
