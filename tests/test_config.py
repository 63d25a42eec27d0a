from __future__ import annotations

from typing import List

import httpx
import pytest

from pipedrive_sdk.auth import APITokenAuth, MultiAuth, OAuth2Auth, StaticTokenSource
from pipedrive_sdk.config import (
    DEFAULT_BASE_URL,
    DEFAULT_USER_AGENT,
    ClientConfig,
    build_http_client,
    build_transport,
    resolve_auth,
)
from pipedrive_sdk.middleware import TransportFunc
from pipedrive_sdk.retry import RetryPolicy, RetryTransport


def ok_transport(calls: List[str]) -> httpx.BaseTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        calls.append("base")
        return httpx.Response(200)

    return httpx.MockTransport(handler)


def named(name: str, calls: List[str]):
    def wrap(inner: httpx.BaseTransport) -> httpx.BaseTransport:
        def handle(request: httpx.Request) -> httpx.Response:
            calls.append(name)
            return inner.handle_request(request)

        return TransportFunc(handle, inner)

    return wrap


def test_middleware_order_is_preserved() -> None:
    calls: List[str] = []
    config = ClientConfig(
        transport=ok_transport(calls),
        middleware=(named("mw1", calls), named("mw2", calls)),
        retry_policy=RetryPolicy(max_attempts=1),
    )

    build_transport(config).handle_request(httpx.Request("GET", "https://example.test"))

    assert calls == ["mw1", "mw2", "base"]


def test_retry_transport_is_outermost_by_default() -> None:
    transport = build_transport(ClientConfig(transport=ok_transport([])))

    assert isinstance(transport, RetryTransport)
    assert transport.policy.max_attempts == 4


def test_built_client_stamps_user_agent_and_token() -> None:
    seen: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200)

    config = ClientConfig(
        base_url="https://api.example.test/api/v2",
        api_token="secret",
        headers={"X-Extra": "1"},
        transport=httpx.MockTransport(handler),
    )
    with build_http_client(config) as client:
        client.get("/deals")

    assert seen[0].headers["User-Agent"] == DEFAULT_USER_AGENT
    assert seen[0].headers["x-api-token"] == "secret"
    assert seen[0].headers["X-Extra"] == "1"
    assert str(seen[0].url) == "https://api.example.test/api/v2/deals"


def test_resolve_auth() -> None:
    assert resolve_auth(ClientConfig()) is None

    token_only = resolve_auth(ClientConfig(api_token="t"))
    assert isinstance(token_only, APITokenAuth)

    oauth_only = resolve_auth(ClientConfig(token_source=StaticTokenSource("a")))
    assert isinstance(oauth_only, OAuth2Auth)

    both = resolve_auth(ClientConfig(api_token="t", token_source=StaticTokenSource("a")))
    assert isinstance(both, MultiAuth)
    assert len(both.providers) == 2

    explicit = APITokenAuth("explicit")
    assert resolve_auth(ClientConfig(api_token="t", auth=explicit)) is explicit


def test_from_env_reads_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PIPEDRIVE_API_TOKEN", "env-token")
    monkeypatch.setenv("PIPEDRIVE_BASE_URL", "https://acme.pipedrive.example/api/v2")
    monkeypatch.setenv("PIPEDRIVE_TIMEOUT", "12.5")
    monkeypatch.setenv("PIPEDRIVE_MAX_ATTEMPTS", "2")

    config = ClientConfig.from_env()

    assert config.api_token == "env-token"
    assert config.base_url == "https://acme.pipedrive.example/api/v2"
    assert config.timeout == 12.5
    assert config.retry_policy is not None
    assert config.retry_policy.max_attempts == 2
    assert config.user_agent == DEFAULT_USER_AGENT


def test_from_env_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "PIPEDRIVE_API_TOKEN",
        "PIPEDRIVE_BASE_URL",
        "PIPEDRIVE_TIMEOUT",
        "PIPEDRIVE_MAX_ATTEMPTS",
        "PIPEDRIVE_USER_AGENT",
    ):
        monkeypatch.delenv(name, raising=False)

    config = ClientConfig.from_env()

    assert config.base_url == DEFAULT_BASE_URL
    assert config.api_token == ""
    assert config.retry_policy is None


def test_from_env_rejects_malformed_numbers(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PIPEDRIVE_MAX_ATTEMPTS", "many")
    with pytest.raises(ValueError):
        ClientConfig.from_env()
