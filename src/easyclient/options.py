"""Client-level defaults and per-request overrides."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, AsyncIterable, Iterable, Mapping

import httpx

from .exceptions import ConfigError


DEFAULT_TIMEOUT = 30.0
ENV_PREFIX = "EASYCLIENT_"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


@dataclass(frozen=True)
class CookieOptions:
    base_url: str = ""
    cookies: Mapping[str, str] | None = None


@dataclass(frozen=True)
class ClientOptions:
    """Defaults applied once when a client is constructed.

    ``timeout`` of ``None`` or ``0`` means :data:`DEFAULT_TIMEOUT` seconds.
    ``transport`` of ``None`` means the platform default ``httpx`` transport.
    """

    follow_redirects: bool = False
    headers: Mapping[str, str] | None = None
    proxy_url: str = ""
    timeout: float | httpx.Timeout | None = None
    transport: httpx.BaseTransport | httpx.AsyncBaseTransport | None = None
    cookies: CookieOptions = field(default_factory=CookieOptions)
    trust_env: bool = True

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        *,
        prefix: str = ENV_PREFIX,
        **overrides: Any,
    ) -> "ClientOptions":
        """Build options from ``<prefix>TIMEOUT``, ``<prefix>PROXY_URL`` and
        ``<prefix>FOLLOW_REDIRECTS``; keyword overrides win over the environment.
        """
        env = os.environ if environ is None else environ
        values: dict[str, Any] = {}

        raw_timeout = env.get(f"{prefix}TIMEOUT")
        if raw_timeout is not None and raw_timeout.strip():
            try:
                values["timeout"] = float(raw_timeout)
            except ValueError as exc:
                raise ConfigError(f"{prefix}TIMEOUT must be a number of seconds", cause=exc) from exc

        proxy_url = env.get(f"{prefix}PROXY_URL")
        if proxy_url:
            values["proxy_url"] = proxy_url.strip()

        raw_redirects = env.get(f"{prefix}FOLLOW_REDIRECTS")
        if raw_redirects is not None:
            values["follow_redirects"] = _parse_bool(raw_redirects, f"{prefix}FOLLOW_REDIRECTS")

        values.update(overrides)
        return cls(**values)


@dataclass(frozen=True)
class RequestOptions:
    method: str
    url: str
    body: bytes | str | Iterable[bytes] | AsyncIterable[bytes] | None = None
    json: object | None = None
    headers: Mapping[str, str] | None = None
    cookies: Mapping[str, str] | None = None
    proxy_url: str = ""
    read_response_body: bool = False


def _parse_bool(raw: str, name: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ConfigError(f"{name} must be a boolean, got {raw!r}")


def resolve_timeout(
    timeout: float | httpx.Timeout | None, *, default: float | None = DEFAULT_TIMEOUT
) -> httpx.Timeout:
    """Apply ``default`` for ``None`` or ``0`` and reject negative deadlines.

    A ``default`` of ``None`` means no deadline at all.
    """
    if isinstance(timeout, httpx.Timeout):
        return timeout
    if timeout is None or timeout == 0:
        return httpx.Timeout(default)
    if timeout < 0:
        raise ConfigError("timeout must be greater than 0")
    return httpx.Timeout(float(timeout))


def total_deadline(timeout: httpx.Timeout) -> float | None:
    """Seconds allowed for a whole request/response cycle, ``None`` for unbounded."""
    limits = (timeout.connect, timeout.read, timeout.write, timeout.pool)
    if any(value is None for value in limits):
        return None
    return max(limits)
