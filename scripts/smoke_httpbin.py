#!/usr/bin/env python3
"""Live smoke test: exercise the public Client surface against httpbin."""

from __future__ import annotations

import json
import logging
import os
import sys

from easyclient import Client, ClientOptions, EasyClientError, RequestOptions

BASE_URL = os.getenv("EASYCLIENT_SMOKE_BASE_URL", "https://httpbin.org")

passed: list[str] = []
failed: list[tuple[str, str]] = []


def ok(name: str) -> None:
    print(f"  PASS  {name}")
    passed.append(name)


def fail(name: str, msg: str) -> None:
    print(f"  FAIL  {name}  -> {msg[:200]}")
    failed.append((name, msg[:200]))


def run(name: str, fn) -> None:
    """Run fn(), which returns None on success or a failure message."""
    try:
        problem = fn()
    except EasyClientError as e:
        fail(name, f"{type(e).__name__}: {e}")
        return
    if problem:
        fail(name, problem)
    else:
        ok(name)


def main() -> None:
    if os.getenv("EASYCLIENT_SMOKE_DEBUG"):
        logging.basicConfig(level=logging.DEBUG)

    client = Client(ClientOptions.from_env(headers={"api-key": "123"}))

    print("\n=== Redirects ===")

    def redirect_not_followed() -> str | None:
        response, _ = client.do(
            RequestOptions(method="GET", url=f"{BASE_URL}/redirect-to?url=/get&status_code=302")
        )
        response.close()
        if response.status_code != 302:
            return f"expected 302, got {response.status_code}"
        return None

    run("redirect_not_followed", redirect_not_followed)

    print("\n=== Requests ===")

    def post_json() -> str | None:
        response, body = client.do(
            RequestOptions(
                method="POST",
                url=f"{BASE_URL}/post",
                json={"foo": "bar"},
                read_response_body=True,
            )
        )
        if response.status_code != 200 or not body:
            return f"status {response.status_code}, {len(body or b'')} body bytes"
        if json.loads(body).get("json") != {"foo": "bar"}:
            return "echoed json mismatch"
        return None

    def header_layers() -> str | None:
        _, body = client.do(
            RequestOptions(
                method="GET",
                url=f"{BASE_URL}/headers",
                headers={"user-agent": "easyclient"},
                cookies={"foo": "bar"},
                read_response_body=True,
            )
        )
        echoed = json.loads(body or b"{}").get("headers", {})
        if echoed.get("Api-Key") != "123" or echoed.get("User-Agent") != "easyclient":
            return f"unexpected headers {echoed}"
        if "foo=bar" not in echoed.get("Cookie", ""):
            return "request cookie missing"
        return None

    run("post_json", post_json)
    run("header_layers", header_layers)

    print("\n=== Cookies ===")

    def cookie_store() -> str | None:
        client.set_cookies(BASE_URL, {"session": "abc"})
        _, body = client.do(RequestOptions(method="GET", url=f"{BASE_URL}/cookies", read_response_body=True))
        if json.loads(body or b"{}").get("cookies", {}).get("session") != "abc":
            return "stored cookie not sent"
        client.clear_cookies()
        if client.get_cookies(BASE_URL):
            return "cookies left after clear"
        return None

    run("cookie_store", cookie_store)

    client.close()

    print("\n" + "=" * 60)
    print(f"PASSED: {len(passed)}   FAILED: {len(failed)}")
    if failed:
        print("\nFailed checks:")
        for name, err in failed:
            print(f"  - {name}: {err}")
    print("=" * 60)

    sys.exit(1 if failed else 0)


if __name__ == "__main__":
    main()
