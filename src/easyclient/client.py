"""Synchronous and asynchronous clients wrapping a long-lived httpx executor."""

from __future__ import annotations

import logging
import time
import urllib.request
import weakref
from http.cookiejar import Cookie as JarCookie
from http.cookiejar import DefaultCookiePolicy, eff_request_host
from typing import AsyncIterator, Iterator, Mapping

import anyio
import httpx

from ._version import __version__
from .exceptions import (
    BodyReadError,
    RequestBuildError,
    TransportError,
    TransportTimeoutError,
)
from .models import Cookie
from .options import ClientOptions, RequestOptions, resolve_timeout, total_deadline
from .security import (
    parse_cookie_url,
    parse_proxy_url,
    sanitize_headers,
    validate_request_target,
)


logger = logging.getLogger(__name__)

USER_AGENT = f"easyclient-python/{__version__}"

# Cookies stored without a Domain attribute are host-only.
_COOKIE_POLICY = DefaultCookiePolicy(strict_ns_domain=DefaultCookiePolicy.DomainStrictNonDomain)


def _normalize_headers(headers: Mapping[str, str] | None) -> dict[str, str]:
    if not headers:
        return {}
    clean: dict[str, str] = {}
    for key, value in headers.items():
        clean[str(key)] = str(value)
    return clean


def _proxy_transport(
    proxy: httpx.URL, *, asynchronous: bool = False
) -> httpx.BaseTransport | httpx.AsyncBaseTransport:
    if asynchronous:
        return httpx.AsyncHTTPTransport(proxy=httpx.Proxy(proxy))
    return httpx.HTTPTransport(proxy=httpx.Proxy(proxy))


def _host_cookie(url: httpx.URL, name: str, value: str) -> JarCookie:
    # Same effective host the stdlib jar derives for cookies without a Domain.
    _, domain = eff_request_host(urllib.request.Request(str(url)))
    return JarCookie(
        version=0,
        name=name,
        value=value,
        port=None,
        port_specified=False,
        domain=domain,
        domain_specified=False,
        domain_initial_dot=False,
        path="/",
        path_specified=True,
        secure=False,
        expires=None,
        discard=True,
        comment=None,
        comment_url=None,
        rest={},
    )


def _is_attached(cookie: JarCookie, request: urllib.request.Request) -> bool:
    if cookie.is_expired():
        return False
    return (
        _COOKIE_POLICY.return_ok_secure(cookie, request)
        and _COOKIE_POLICY.return_ok_port(cookie, request)
        and _COOKIE_POLICY.return_ok_domain(cookie, request)
        and _COOKIE_POLICY.path_return_ok(cookie.path, request)
    )


def _start_deadline(timeout: httpx.Timeout) -> float | None:
    seconds = total_deadline(timeout)
    return None if seconds is None else time.monotonic() + seconds


def _remaining(deadline: float | None) -> float | None:
    if deadline is None:
        return None
    return max(0.0, deadline - time.monotonic())


def _expired(deadline: float | None) -> bool:
    return deadline is not None and time.monotonic() >= deadline


class _DeadlineStream(httpx.SyncByteStream):
    """Fails the body read once the request's total deadline has passed."""

    def __init__(self, stream: httpx.SyncByteStream, deadline: float) -> None:
        self._stream = stream
        self._deadline = deadline

    def __iter__(self) -> Iterator[bytes]:
        for chunk in self._stream:
            if _expired(self._deadline):
                raise httpx.ReadTimeout("Request exceeded its total deadline")
            yield chunk

    def close(self) -> None:
        self._stream.close()


class _AsyncDeadlineStream(httpx.AsyncByteStream):
    def __init__(self, stream: httpx.AsyncByteStream, deadline: float) -> None:
        self._stream = stream
        self._deadline = deadline

    async def __aiter__(self) -> AsyncIterator[bytes]:
        async for chunk in self._stream:
            if _expired(self._deadline):
                raise httpx.ReadTimeout("Request exceeded its total deadline")
            yield chunk

    async def aclose(self) -> None:
        await self._stream.aclose()


class _ExecutorBoundStream(httpx.SyncByteStream):
    """Response stream that closes its per-call executor once closed."""

    def __init__(self, stream: httpx.SyncByteStream, executor: httpx.Client) -> None:
        self._stream = stream
        self._executor = executor

    def __iter__(self) -> Iterator[bytes]:
        yield from self._stream

    def close(self) -> None:
        try:
            self._stream.close()
        finally:
            self._executor.close()


class _AsyncExecutorBoundStream(httpx.AsyncByteStream):
    def __init__(self, stream: httpx.AsyncByteStream, executor: httpx.AsyncClient) -> None:
        self._stream = stream
        self._executor = executor

    async def __aiter__(self) -> AsyncIterator[bytes]:
        async for chunk in self._stream:
            yield chunk

    async def aclose(self) -> None:
        try:
            await self._stream.aclose()
        finally:
            await self._executor.aclose()


class _BaseClient:
    _asynchronous = False

    def __init__(self, options: ClientOptions | None = None) -> None:
        options = options or ClientOptions()
        timeout = resolve_timeout(options.timeout)

        transport = options.transport
        if options.proxy_url:
            transport = self._proxy_transport_for(parse_proxy_url(options.proxy_url))
        cookie_url = None
        if options.cookies.base_url:
            cookie_url = parse_cookie_url(options.cookies.base_url)

        self._trust_env = options.trust_env
        self._headers = _normalize_headers(options.headers)
        self._transport = transport
        self._retired: list = []
        self._streaming: weakref.WeakSet[httpx.Response] = weakref.WeakSet()
        self._httpx = self._new_executor(
            transport,
            timeout=timeout,
            follow_redirects=options.follow_redirects,
            cookies=None,
        )
        if cookie_url is not None:
            self._store_cookies(cookie_url, options.cookies.cookies or {})

    def _new_executor(self, transport, *, timeout, follow_redirects, cookies):  # pragma: no cover
        raise NotImplementedError

    def _default_transport(self):  # pragma: no cover
        raise NotImplementedError

    def _retire(self, executor) -> None:  # pragma: no cover
        raise NotImplementedError

    def _executor_kwargs(
        self,
        transport,
        *,
        timeout: httpx.Timeout,
        follow_redirects: bool,
        cookies: httpx.Cookies | None,
    ) -> dict[str, object]:
        return {
            "transport": transport,
            "timeout": timeout,
            "follow_redirects": follow_redirects,
            "cookies": cookies,
            "headers": {"User-Agent": USER_AGENT},
            "trust_env": self._trust_env,
        }

    def _proxy_transport_for(self, proxy: httpx.URL):
        return _proxy_transport(proxy, asynchronous=self._asynchronous)

    @property
    def transport(self) -> httpx.BaseTransport | httpx.AsyncBaseTransport | None:
        """The installed transport, ``None`` while the platform default is in use."""
        return self._transport

    @property
    def headers(self) -> dict[str, str]:
        return dict(self._headers)

    @property
    def timeout(self) -> httpx.Timeout:
        return self._httpx.timeout

    @property
    def follow_redirects(self) -> bool:
        return self._httpx.follow_redirects

    def set_headers(self, headers: Mapping[str, str] | None) -> None:
        self._headers = _normalize_headers(headers)

    def clear_headers(self) -> None:
        self._headers = {}

    def set_cookies(self, url: str, cookies: Mapping[str, str]) -> None:
        """Store host-only cookies for every later request to ``url``'s host."""
        self._store_cookies(parse_cookie_url(url), cookies)

    def _store_cookies(self, url: httpx.URL, cookies: Mapping[str, str]) -> None:
        for name, value in cookies.items():
            self._httpx.cookies.jar.set_cookie(_host_cookie(url, str(name), str(value)))

    def clear_cookies(self) -> None:
        self._httpx.cookies = httpx.Cookies()

    def get_cookies(self, url: str) -> list[Cookie]:
        """Return the stored cookies that would be sent with a request to ``url``."""
        target = urllib.request.Request(str(parse_cookie_url(url)))
        return [Cookie.from_jar(cookie) for cookie in self._attached_cookies(target)]

    def _attached_cookies(self, target: urllib.request.Request) -> list[JarCookie]:
        matched = [cookie for cookie in self._httpx.cookies.jar if _is_attached(cookie, target)]
        matched.sort(key=lambda cookie: len(cookie.path or ""), reverse=True)
        return matched

    def set_proxy(self, proxy_url: str) -> None:
        """Route all traffic through ``proxy_url``.

        Any previously installed custom transport is discarded.
        """
        proxy = parse_proxy_url(proxy_url)
        logger.debug("Routing requests through proxy %s://%s", proxy.scheme, proxy.host)
        self._install_transport(self._proxy_transport_for(proxy))

    def clear_proxy(self) -> None:
        """Install a bare default transport, dropping proxy and custom transport settings."""
        self._install_transport(self._default_transport())

    def set_redirects(self, follow_redirects: bool) -> None:
        self._httpx.follow_redirects = bool(follow_redirects)

    def set_timeout(self, timeout: float | httpx.Timeout | None) -> None:
        """Set the deadline for each whole request; ``None`` or ``0`` removes it."""
        self._httpx.timeout = resolve_timeout(timeout, default=None)

    def set_transport(self, transport) -> None:
        self._install_transport(transport)

    def _install_transport(self, transport) -> None:
        # A transport is fixed for the lifetime of an httpx client, so the
        # executor is rebuilt and the old one retired.
        previous = self._httpx
        logger.debug("Installing transport %s", type(transport).__name__)
        self._transport = transport
        self._httpx = self._new_executor(
            transport,
            timeout=previous.timeout,
            follow_redirects=previous.follow_redirects,
            cookies=previous.cookies,
        )
        if transport is not None and transport is previous._transport:
            return
        self._retire(previous)

    def _has_open_responses(self) -> bool:
        return any(not response.is_closed for response in self._streaming)

    def _build_request(self, options: RequestOptions) -> httpx.Request:
        method = validate_request_target(options.method, options.url)
        if options.body is not None and options.json is not None:
            raise RequestBuildError("body and json are mutually exclusive")

        headers = httpx.Headers(self._httpx.headers)
        headers.update(self._headers)
        if options.headers:
            headers.update(_normalize_headers(options.headers))
        if "cookie" not in headers:
            cookie_header = self._cookie_header(options.url, options.cookies)
            if cookie_header:
                headers["Cookie"] = cookie_header
        # Built without the executor's jar: httpx would attach stored cookies
        # under its default policy, which also sends host-only cookies to
        # subdomains.
        try:
            return httpx.Request(
                method,
                options.url,
                content=options.body,
                json=options.json,
                headers=headers,
                extensions={"timeout": self._httpx.timeout.as_dict()},
            )
        except (httpx.InvalidURL, TypeError, ValueError) as exc:
            raise RequestBuildError("Could not build request", cause=exc) from exc

    def _cookie_header(self, url: str, request_cookies: Mapping[str, str] | None) -> str:
        pairs = [
            cookie.name if cookie.value is None else f"{cookie.name}={cookie.value}"
            for cookie in self._attached_cookies(urllib.request.Request(url))
        ]
        pairs.extend(f"{name}={value}" for name, value in _normalize_headers(request_cookies).items())
        return "; ".join(pairs)

    @staticmethod
    def _request_proxy(options: RequestOptions) -> httpx.URL | None:
        if not options.proxy_url:
            return None
        return parse_proxy_url(options.proxy_url)

    def _scoped_executor_kwargs(self) -> dict[str, object]:
        return {
            "timeout": self._httpx.timeout,
            "follow_redirects": self._httpx.follow_redirects,
            "cookies": self._httpx.cookies,
        }

    def _keep_cookies(self, response: httpx.Response) -> None:
        for hop in (*response.history, response):
            self._httpx.cookies.extract_cookies(hop)

    @staticmethod
    def _log_dispatch(request: httpx.Request, proxy: httpx.URL | None) -> None:
        if not logger.isEnabledFor(logging.DEBUG):
            return
        logger.debug(
            "%s %s headers=%s proxy=%s",
            request.method,
            request.url,
            sanitize_headers(request.headers),
            f"{proxy.scheme}://{proxy.host}" if proxy is not None else None,
        )

    @staticmethod
    def _transport_error(exc: httpx.RequestError) -> TransportError:
        if isinstance(exc, httpx.TimeoutException):
            return TransportTimeoutError("Request timed out", cause=exc)
        return TransportError("Request failed", cause=exc)

    @staticmethod
    def _body_read_error(exc: Exception, response: httpx.Response) -> BodyReadError:
        if isinstance(exc, httpx.TimeoutException):
            return TransportTimeoutError("Request timed out", cause=exc, response=response)
        return BodyReadError("Failed to read response body", cause=exc, response=response)


class Client(_BaseClient):
    """Synchronous client."""

    def _new_executor(self, transport, *, timeout, follow_redirects, cookies) -> httpx.Client:
        return httpx.Client(
            **self._executor_kwargs(
                transport,
                timeout=timeout,
                follow_redirects=follow_redirects,
                cookies=cookies,
            )
        )

    def _default_transport(self) -> httpx.HTTPTransport:
        return httpx.HTTPTransport()

    def _retire(self, executor: httpx.Client) -> None:
        # Responses still streaming keep their executor open until close().
        if self._has_open_responses():
            self._retired.append(executor)
        else:
            executor.close()

    def __enter__(self) -> "Client":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        for executor in self._retired:
            executor.close()
        self._retired.clear()
        self._httpx.close()

    def do(self, options: RequestOptions) -> tuple[httpx.Response, bytes | None]:
        """Send one request built from the client defaults and ``options``.

        Returns ``(response, body)``. ``body`` is ``None`` unless
        ``options.read_response_body`` is set, in which case the response is
        already closed; otherwise the caller reads and closes it.

        The client timeout bounds the whole call, body included. A
        per-request ``proxy_url`` is served by a dedicated executor, so the
        client's own transport is never touched by this call.
        """
        request = self._build_request(options)
        proxy = self._request_proxy(options)
        deadline = _start_deadline(self._httpx.timeout)
        self._log_dispatch(request, proxy)

        if proxy is None:
            response = self._send(self._httpx, request, deadline)
            if not options.read_response_body:
                self._streaming.add(response)
                return response, None
            return response, self._read(response)

        executor = self._new_executor(
            self._proxy_transport_for(proxy), **self._scoped_executor_kwargs()
        )
        try:
            response = self._send(executor, request, deadline)
        except BaseException:
            executor.close()
            raise
        self._keep_cookies(response)
        if not options.read_response_body:
            response.stream = _ExecutorBoundStream(response.stream, executor)
            return response, None
        try:
            return response, self._read(response)
        finally:
            executor.close()

    def _send(
        self, executor: httpx.Client, request: httpx.Request, deadline: float | None
    ) -> httpx.Response:
        try:
            response = executor.send(request, stream=True)
        except httpx.RequestError as exc:
            raise self._transport_error(exc) from exc
        if _expired(deadline):
            response.close()
            raise TransportTimeoutError("Request exceeded its total deadline", response=response)
        if deadline is not None:
            response.stream = _DeadlineStream(response.stream, deadline)
        return response

    def _read(self, response: httpx.Response) -> bytes:
        try:
            return response.read()
        except (httpx.RequestError, httpx.StreamError) as exc:
            raise self._body_read_error(exc, response) from exc
        finally:
            response.close()


class AsyncClient(_BaseClient):
    """Asynchronous client.

    Transports replaced through ``set_proxy``/``set_transport`` are closed by
    ``aclose()``.
    """

    _asynchronous = True

    def _new_executor(self, transport, *, timeout, follow_redirects, cookies) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            **self._executor_kwargs(
                transport,
                timeout=timeout,
                follow_redirects=follow_redirects,
                cookies=cookies,
            )
        )

    def _default_transport(self) -> httpx.AsyncHTTPTransport:
        return httpx.AsyncHTTPTransport()

    def _retire(self, executor: httpx.AsyncClient) -> None:
        self._retired.append(executor)

    async def __aenter__(self) -> "AsyncClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        for executor in self._retired:
            await executor.aclose()
        self._retired.clear()
        await self._httpx.aclose()

    async def do(self, options: RequestOptions) -> tuple[httpx.Response, bytes | None]:
        request = self._build_request(options)
        proxy = self._request_proxy(options)
        deadline = _start_deadline(self._httpx.timeout)
        self._log_dispatch(request, proxy)

        if proxy is None:
            response = await self._send(self._httpx, request, deadline)
            if not options.read_response_body:
                self._streaming.add(response)
                return response, None
            return response, await self._read(response, deadline)

        executor = self._new_executor(
            self._proxy_transport_for(proxy), **self._scoped_executor_kwargs()
        )
        try:
            response = await self._send(executor, request, deadline)
        except BaseException:
            await executor.aclose()
            raise
        self._keep_cookies(response)
        if not options.read_response_body:
            response.stream = _AsyncExecutorBoundStream(response.stream, executor)
            return response, None
        try:
            return response, await self._read(response, deadline)
        finally:
            await executor.aclose()

    async def _send(
        self, executor: httpx.AsyncClient, request: httpx.Request, deadline: float | None
    ) -> httpx.Response:
        try:
            with anyio.fail_after(_remaining(deadline)):
                response = await executor.send(request, stream=True)
        except TimeoutError as exc:
            raise TransportTimeoutError("Request exceeded its total deadline", cause=exc) from exc
        except httpx.RequestError as exc:
            raise self._transport_error(exc) from exc
        if deadline is not None:
            response.stream = _AsyncDeadlineStream(response.stream, deadline)
        return response

    async def _read(self, response: httpx.Response, deadline: float | None) -> bytes:
        try:
            with anyio.fail_after(_remaining(deadline)):
                return await response.aread()
        except TimeoutError as exc:
            raise TransportTimeoutError(
                "Request exceeded its total deadline", cause=exc, response=response
            ) from exc
        except (httpx.RequestError, httpx.StreamError) as exc:
            raise self._body_read_error(exc, response) from exc
        finally:
            await response.aclose()
