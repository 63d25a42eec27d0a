"""Credential providers that stamp auth headers onto outbound requests."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Protocol, Tuple

import httpx

from .middleware import Middleware, TransportFunc, copy_request

API_TOKEN_HEADER = "x-api-token"


class AuthProvider(Protocol):
    def apply(self, request: httpx.Request) -> None:
        ...


class TokenSource(Protocol):
    def token(self) -> Any:
        ...


@dataclass(frozen=True)
class APITokenAuth:
    token: str

    def apply(self, request: httpx.Request) -> None:
        if not self.token:
            return
        if request.headers.get(API_TOKEN_HEADER):
            return
        request.headers[API_TOKEN_HEADER] = self.token


@dataclass(frozen=True)
class StaticTokenSource:
    access_token: str

    def token(self) -> str:
        return self.access_token


def _access_token(token: Any) -> str:
    if isinstance(token, str):
        return token
    return str(getattr(token, "access_token"))


@dataclass(frozen=True)
class OAuth2Auth:
    """Bearer auth backed by a token source.

    The token source is asked for a token on every request that needs one, so
    a refreshing source can rotate credentials; its errors propagate.
    """

    token_source: Optional[TokenSource]

    def apply(self, request: httpx.Request) -> None:
        if self.token_source is None:
            return
        if request.headers.get("Authorization"):
            return
        access_token = _access_token(self.token_source.token())
        request.headers["Authorization"] = f"Bearer {access_token}"


class MultiAuth:
    def __init__(self, *providers: Optional[AuthProvider]) -> None:
        self.providers: Tuple[AuthProvider, ...] = tuple(p for p in providers if p is not None)

    def apply(self, request: httpx.Request) -> None:
        for provider in self.providers:
            provider.apply(request)


def auth_middleware(provider: Optional[AuthProvider]) -> Middleware:
    def wrap(inner: httpx.BaseTransport) -> httpx.BaseTransport:
        def handle(request: httpx.Request) -> httpx.Response:
            if provider is not None:
                request = copy_request(request)
                provider.apply(request)
            return inner.handle_request(request)

        return TransportFunc(handle, inner)

    return wrap


__all__ = [
    "API_TOKEN_HEADER",
    "APITokenAuth",
    "AuthProvider",
    "MultiAuth",
    "OAuth2Auth",
    "StaticTokenSource",
    "TokenSource",
    "auth_middleware",
]
