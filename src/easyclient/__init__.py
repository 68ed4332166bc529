"""Reusable HTTP client defaults with per-request overrides, built on httpx."""

from ._version import __version__
from .client import AsyncClient, Client
from .exceptions import (
    BodyReadError,
    ConfigError,
    EasyClientError,
    RequestBuildError,
    TransportError,
    TransportTimeoutError,
)
from .models import Cookie
from .options import DEFAULT_TIMEOUT, ClientOptions, CookieOptions, RequestOptions

__all__ = [
    "AsyncClient",
    "BodyReadError",
    "Client",
    "ClientOptions",
    "ConfigError",
    "Cookie",
    "CookieOptions",
    "DEFAULT_TIMEOUT",
    "EasyClientError",
    "RequestBuildError",
    "RequestOptions",
    "TransportError",
    "TransportTimeoutError",
    "__version__",
]
