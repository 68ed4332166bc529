from __future__ import annotations

import httpx
import pytest

from easyclient import ClientOptions, ConfigError, CookieOptions, RequestOptions
from easyclient.options import DEFAULT_TIMEOUT, resolve_timeout, total_deadline


def test_client_options_defaults() -> None:
    options = ClientOptions()
    assert options.follow_redirects is False
    assert options.headers is None
    assert options.proxy_url == ""
    assert options.timeout is None
    assert options.transport is None
    assert options.cookies == CookieOptions()


def test_request_options_defaults() -> None:
    options = RequestOptions(method="GET", url="https://example.com/")
    assert options.body is None
    assert options.proxy_url == ""
    assert options.read_response_body is False


def test_resolve_timeout() -> None:
    assert resolve_timeout(None) == httpx.Timeout(DEFAULT_TIMEOUT)
    assert resolve_timeout(0) == httpx.Timeout(DEFAULT_TIMEOUT)
    assert resolve_timeout(2) == httpx.Timeout(2.0)
    custom = httpx.Timeout(5.0, connect=1.0)
    assert resolve_timeout(custom) is custom
    with pytest.raises(ConfigError):
        resolve_timeout(-0.5)


def test_resolve_timeout_without_default_is_unbounded() -> None:
    assert resolve_timeout(None, default=None) == httpx.Timeout(None)
    assert resolve_timeout(0, default=None) == httpx.Timeout(None)
    assert resolve_timeout(3, default=None) == httpx.Timeout(3.0)


def test_total_deadline() -> None:
    assert total_deadline(httpx.Timeout(4.0)) == 4.0
    assert total_deadline(httpx.Timeout(5.0, connect=1.0)) == 5.0
    assert total_deadline(httpx.Timeout(None)) is None
    assert total_deadline(httpx.Timeout(5.0, pool=None)) is None


def test_from_env_reads_prefixed_values() -> None:
    options = ClientOptions.from_env(
        {
            "EASYCLIENT_TIMEOUT": "12.5",
            "EASYCLIENT_PROXY_URL": " http://proxy.local:3128 ",
            "EASYCLIENT_FOLLOW_REDIRECTS": "yes",
            "UNRELATED": "x",
        }
    )
    assert options.timeout == 12.5
    assert options.proxy_url == "http://proxy.local:3128"
    assert options.follow_redirects is True


def test_from_env_empty_environment_gives_defaults() -> None:
    assert ClientOptions.from_env({}) == ClientOptions()


def test_from_env_overrides_win() -> None:
    options = ClientOptions.from_env(
        {"EASYCLIENT_FOLLOW_REDIRECTS": "true"},
        follow_redirects=False,
        headers={"api-key": "123"},
    )
    assert options.follow_redirects is False
    assert options.headers == {"api-key": "123"}


def test_from_env_custom_prefix(monkeypatch) -> None:
    monkeypatch.setenv("MYAPP_TIMEOUT", "3")
    assert ClientOptions.from_env(prefix="MYAPP_").timeout == 3.0


@pytest.mark.parametrize(
    "environ",
    [
        {"EASYCLIENT_TIMEOUT": "soon"},
        {"EASYCLIENT_FOLLOW_REDIRECTS": "maybe"},
    ],
)
def test_from_env_rejects_malformed_values(environ: dict[str, str]) -> None:
    with pytest.raises(ConfigError):
        ClientOptions.from_env(environ)
