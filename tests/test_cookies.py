from __future__ import annotations

import pytest

from easyclient import Client, ConfigError, Cookie


def test_set_then_get_cookies() -> None:
    with Client() as client:
        client.set_cookies("https://example.com", {"foo": "bar"})
        cookies = client.get_cookies("https://example.com")

    assert len(cookies) == 1
    assert cookies[0].name == "foo"
    assert cookies[0].value == "bar"
    assert cookies[0].domain == "example.com"
    assert cookies[0].path == "/"
    assert cookies[0].expires is None


def test_set_cookies_replaces_same_name() -> None:
    with Client() as client:
        client.set_cookies("https://example.com", {"foo": "bar"})
        client.set_cookies("https://example.com/some/page", {"foo": "baz"})
        cookies = client.get_cookies("https://example.com/")

    assert [(c.name, c.value) for c in cookies] == [("foo", "baz")]


def test_cookies_are_scoped_to_host() -> None:
    with Client() as client:
        client.set_cookies("https://example.com", {"foo": "bar"})
        client.set_cookies("http://localhost:8000", {"local": "1"})

        assert client.get_cookies("https://other.org") == []
        assert [c.name for c in client.get_cookies("http://localhost:8000/path")] == ["local"]


def test_clear_cookies_empties_store() -> None:
    with Client() as client:
        client.set_cookies("https://example.com", {"foo": "bar", "baz": "qux"})
        client.clear_cookies()

        assert client.get_cookies("https://example.com") == []
        assert client.get_cookies("http://localhost") == []


@pytest.mark.parametrize("url", ["", "example.com", "mailto:someone@example.com", "https://"])
def test_invalid_cookie_urls_raise_config_error(url: str) -> None:
    with Client() as client:
        with pytest.raises(ConfigError):
            client.set_cookies(url, {"foo": "bar"})
        with pytest.raises(ConfigError):
            client.get_cookies(url)


def test_cookie_model_is_frozen() -> None:
    cookie = Cookie(name="foo", value="bar")
    with pytest.raises(Exception):
        cookie.name = "other"  # type: ignore[misc]


def test_cookies_are_host_only() -> None:
    with Client() as client:
        client.set_cookies("https://example.com", {"foo": "bar"})

        assert client.get_cookies("https://api.example.com") == []
        assert [c.name for c in client.get_cookies("https://example.com/deep/path")] == ["foo"]
