"""easyclient exceptions."""

from __future__ import annotations

import httpx


class EasyClientError(Exception):
    """Base exception for all easyclient failures."""

    def __init__(
        self,
        message: str,
        *,
        cause: Exception | None = None,
        response: httpx.Response | None = None,
    ) -> None:
        super().__init__(message)
        self.cause = cause
        self.response = response

    def __str__(self) -> str:  # pragma: no cover - simple formatting
        if self.cause is None:
            return str(self.args[0])
        return f"{self.args[0]}: {self.cause}"


class ConfigError(EasyClientError):
    """Raised for malformed proxy, cookie or option values."""


class RequestBuildError(EasyClientError):
    """Raised when the outgoing request cannot be constructed."""


class TransportError(EasyClientError):
    """Raised for connection, TLS, protocol and other network-layer failures."""


class TransportTimeoutError(TransportError):
    """Raised when a request exceeds the configured timeout."""


class BodyReadError(EasyClientError):
    """Raised when the response body cannot be read after a successful send.

    The already obtained response is available as ``response``.
    """
