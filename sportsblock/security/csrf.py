"""
Origin-based CSRF validation for mutating requests.

The Origin header is the primary check, Referer the fallback. Requests
carrying neither are allowed only outside production (curl, test clients).
"""

from collections.abc import Mapping
from urllib.parse import urlsplit

from sportsblock.config import get_settings

PROTECTED_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})


def _host_of(url: str) -> str | None:
    try:
        parts = urlsplit(url)
    except ValueError:
        return None
    if not parts.scheme or not parts.netloc:
        return None
    return parts.netloc.lower()


def _allowed_hosts(allowed_origins: list[str]) -> set[str]:
    hosts = set()
    for origin in allowed_origins:
        host = _host_of(origin)
        if host:
            hosts.add(host)
    return hosts


def validate_csrf_origin(
    method: str,
    headers: Mapping[str, str],
    production: bool | None = None,
    allowed_origins: list[str] | None = None,
) -> bool:
    """
    Return True if the request may proceed.

    Safe methods always pass. For mutations the Origin (or, failing that,
    the Referer) must resolve to an allowed origin's host or to the
    request's own Host header.
    """
    if method.upper() not in PROTECTED_METHODS:
        return True

    settings = get_settings()
    if production is None:
        production = settings.is_production
    if allowed_origins is None:
        allowed_origins = settings.allowed_origins_list

    origin = headers.get("origin")
    referer = headers.get("referer")
    request_host = (headers.get("host") or "").lower()
    allowed = _allowed_hosts(allowed_origins)

    if origin:
        if origin in allowed_origins:
            return True
        host = _host_of(origin)
        return host is not None and (host in allowed or host == request_host)

    if referer:
        host = _host_of(referer)
        if host is not None and (host in allowed or host == request_host):
            return True
        return False

    return not production
