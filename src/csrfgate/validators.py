from collections.abc import Mapping
from typing import Optional
from typing import Protocol
from typing import runtime_checkable
from urllib.parse import SplitResult
from urllib.parse import urlsplit

from starlette.datastructures import Headers

from csrfgate.errors import CsrfConfigError


@runtime_checkable
class RequestValidator(Protocol):
    def validate(self, headers: Headers) -> bool: ...


def as_headers(headers: Mapping[str, str]) -> Headers:
    if isinstance(headers, Headers):
        return headers
    return Headers(headers=dict(headers))


def header_url(headers: Mapping[str, str], name: str) -> Optional[SplitResult]:
    """Parse the named header as an absolute URL.

    Returns None when the header is missing or does not hold a URL with both
    a scheme and a host (``null`` origins included).
    """
    value = as_headers(headers).get(name)
    if value is None:
        return None
    try:
        url = urlsplit(value.strip())
        # .port raises on a non-numeric or out of range port
        url.port
    except ValueError:
        return None
    if not url.scheme or not url.hostname:
        return None
    return url


def netloc_host(url: SplitResult) -> str:
    """The host of ``url`` as written: no userinfo or port, case and IPv6 brackets kept."""
    host = url.netloc.rpartition("@")[2]
    if host.startswith("["):
        return host[: host.find("]") + 1]
    return host.partition(":")[0]


class HeaderPresent:
    """Require that the given header be present in each request."""

    def __init__(self, name: str):
        if not name or not name.strip():
            raise CsrfConfigError("Header name must not be empty")
        self.name = name

    def validate(self, headers: Mapping[str, str]) -> bool:
        return self.name in as_headers(headers)

    def __repr__(self) -> str:
        return f"HeaderPresent({self.name!r})"


class OriginMatchesKnownHost:
    """Validates that ``Origin`` matches the host this service is deployed at.

    If ``port`` is None, an Origin matches only if it doesn't carry a port
    either; ``http://app.test:80`` does not match ``("http", "app.test")``.
    Hosts compare in lowercase, the form URL parsing yields.
    """

    def __init__(self, scheme: str, host: str, port: Optional[int] = None):
        if port is not None and port < 0:
            raise CsrfConfigError("Port must be nonnegative or None")
        self.scheme = scheme
        self.host = host.lower()
        self.port = port

    def validate(self, headers: Mapping[str, str]) -> bool:
        origin = header_url(headers, "Origin")
        if origin is None:
            return False
        return (
            origin.scheme == self.scheme
            and origin.hostname == self.host
            and origin.port == self.port
        )

    def __repr__(self) -> str:
        return f"OriginMatchesKnownHost({self.scheme!r}, {self.host!r}, port={self.port!r})"


class OriginMatchesHostHeader:
    """Validates that the host part of ``Origin`` equals the ``Host`` header.

    Only the host is compared, exactly as written in both headers. Scheme and
    port of the Origin are ignored, and a ``Host`` header that carries a port
    never matches.
    """

    def validate(self, headers: Mapping[str, str]) -> bool:
        headers = as_headers(headers)
        host = headers.get("Host")
        origin = header_url(headers, "Origin")
        if host is None or origin is None:
            return False
        return host == netloc_host(origin)

    def __repr__(self) -> str:
        return "OriginMatchesHostHeader()"
