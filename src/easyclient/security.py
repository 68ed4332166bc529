"""URL, method and header validation helpers."""

from __future__ import annotations

import re
from typing import Mapping

import httpx

from .exceptions import ConfigError, RequestBuildError


SENSITIVE_HEADERS = {
    "authorization",
    "proxy-authorization",
    "cookie",
    "x-api-key",
    "api-key",
}

PROXY_SCHEMES = frozenset({"http", "https", "socks5", "socks5h"})
HTTP_SCHEMES = frozenset({"http", "https"})

_METHOD_TOKEN = re.compile(r"[!#$%&'*+\-.^_`|~0-9A-Za-z]+")


def sanitize_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Return headers with sensitive values redacted for logging."""
    redacted: dict[str, str] = {}
    for key, value in headers.items():
        if key.lower() in SENSITIVE_HEADERS:
            redacted[key] = "[REDACTED]"
        else:
            redacted[key] = value
    return redacted


def _parse_url(url: str, *, kind: str, schemes: frozenset[str]) -> httpx.URL:
    if not url or "\x00" in url:
        raise ConfigError(f"Invalid {kind} URL: {url!r}")
    try:
        parsed = httpx.URL(url)
    except httpx.InvalidURL as exc:
        raise ConfigError(f"Invalid {kind} URL: {url!r}", cause=exc) from exc
    if not parsed.scheme or not parsed.host:
        raise ConfigError(f"{kind} URL must include scheme and host: {url!r}")
    if parsed.scheme not in schemes:
        raise ConfigError(f"Unsupported {kind} URL scheme: {parsed.scheme}")
    return parsed


def parse_proxy_url(url: str) -> httpx.URL:
    """Validate a proxy URL, raising :class:`ConfigError` when it is unusable."""
    return _parse_url(url, kind="proxy", schemes=PROXY_SCHEMES)


def parse_cookie_url(url: str) -> httpx.URL:
    """Validate the URL cookies are scoped to."""
    return _parse_url(url, kind="cookie", schemes=HTTP_SCHEMES)


def validate_request_target(method: str, url: str) -> str:
    """Check the method token and the absolute request URL.

    Returns the upper-cased method.
    """
    if not isinstance(method, str) or not _METHOD_TOKEN.fullmatch(method):
        raise RequestBuildError(f"Invalid HTTP method: {method!r}")
    try:
        _parse_url(url, kind="request", schemes=HTTP_SCHEMES)
    except ConfigError as exc:
        raise RequestBuildError(str(exc.args[0]), cause=exc.cause) from exc
    return method.upper()
