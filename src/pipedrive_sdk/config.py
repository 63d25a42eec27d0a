"""Configuration objects and transport assembly for the Pipedrive SDK."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import httpx

from .auth import APITokenAuth, AuthProvider, MultiAuth, OAuth2Auth, TokenSource, auth_middleware
from .middleware import Middleware, chain_middleware, user_agent_middleware
from .retry import RetryPolicy, RetryTransport, default_retry_policy

DEFAULT_BASE_URL = "https://api.pipedrive.com/api/v2"
DEFAULT_USER_AGENT = "pipedrive-sdk-python/0.1.0"


@dataclass(frozen=True)
class ClientConfig:
    base_url: str = DEFAULT_BASE_URL
    api_token: str = ""
    token_source: Optional[TokenSource] = None
    auth: Optional[AuthProvider] = None
    user_agent: str = DEFAULT_USER_AGENT
    timeout: float = 30.0
    retry_policy: Optional[RetryPolicy] = None
    middleware: Tuple[Middleware, ...] = ()
    headers: Dict[str, str] = field(default_factory=dict)
    transport: Optional[httpx.BaseTransport] = None

    @classmethod
    def from_env(cls) -> "ClientConfig":
        base_url = os.environ.get("PIPEDRIVE_BASE_URL", "").strip() or DEFAULT_BASE_URL
        api_token = os.environ.get("PIPEDRIVE_API_TOKEN", "").strip()
        user_agent = os.environ.get("PIPEDRIVE_USER_AGENT", "").strip() or DEFAULT_USER_AGENT
        timeout = float(os.environ.get("PIPEDRIVE_TIMEOUT", "30"))

        retry_policy = None
        max_attempts = os.environ.get("PIPEDRIVE_MAX_ATTEMPTS", "").strip()
        if max_attempts:
            defaults = default_retry_policy()
            retry_policy = RetryPolicy(
                max_attempts=int(max_attempts),
                base_delay=defaults.base_delay,
                max_delay=defaults.max_delay,
                jitter=defaults.jitter,
                retry_all_methods=defaults.retry_all_methods,
            )

        return cls(
            base_url=base_url,
            api_token=api_token,
            user_agent=user_agent,
            timeout=timeout,
            retry_policy=retry_policy,
        )


def resolve_auth(config: ClientConfig) -> Optional[AuthProvider]:
    if config.auth is not None:
        return config.auth
    providers: List[AuthProvider] = []
    if config.api_token:
        providers.append(APITokenAuth(config.api_token))
    if config.token_source is not None:
        providers.append(OAuth2Auth(config.token_source))
    if not providers:
        return None
    if len(providers) == 1:
        return providers[0]
    return MultiAuth(*providers)


def build_transport(config: ClientConfig) -> httpx.BaseTransport:
    """Chain caller middleware, user agent and auth, with retry outermost."""
    base = config.transport if config.transport is not None else httpx.HTTPTransport()

    middleware: List[Middleware] = list(config.middleware)
    if config.user_agent:
        middleware.append(user_agent_middleware(config.user_agent))
    auth = resolve_auth(config)
    if auth is not None:
        middleware.append(auth_middleware(auth))

    transport = chain_middleware(base, middleware)
    return RetryTransport(transport, config.retry_policy or default_retry_policy())


def build_http_client(config: ClientConfig) -> httpx.Client:
    return httpx.Client(
        base_url=config.base_url,
        timeout=config.timeout,
        headers=dict(config.headers),
        transport=build_transport(config),
    )


__all__ = [
    "ClientConfig",
    "DEFAULT_BASE_URL",
    "DEFAULT_USER_AGENT",
    "build_http_client",
    "build_transport",
    "resolve_auth",
]
