"""Composable httpx transport middleware."""

from __future__ import annotations

from typing import Callable, Optional, Sequence

import httpx

Middleware = Callable[[httpx.BaseTransport], httpx.BaseTransport]
Handler = Callable[[httpx.Request], httpx.Response]


class TransportFunc(httpx.BaseTransport):
    """Adapts a plain function into a transport.

    ``inner`` is the transport the function forwards to, if any; closing the
    adapter closes it.
    """

    def __init__(self, handler: Handler, inner: Optional[httpx.BaseTransport] = None) -> None:
        self._handler = handler
        self._inner = inner

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        return self._handler(request)

    def close(self) -> None:
        if self._inner is not None:
            self._inner.close()


def chain_middleware(
    base: httpx.BaseTransport,
    middleware: Sequence[Optional[Middleware]],
) -> httpx.BaseTransport:
    """Wrap ``base`` so that the first middleware listed runs outermost."""
    transport = base
    for wrap in reversed(list(middleware)):
        if wrap is None:
            continue
        transport = wrap(transport)
    return transport


def copy_request(request: httpx.Request) -> httpx.Request:
    """Shallow copy with independent headers and extensions; the body stream is shared."""
    return httpx.Request(
        request.method,
        request.url,
        headers=request.headers.copy(),
        stream=request.stream,
        extensions=dict(request.extensions),
    )


def _has_explicit_user_agent(request: httpx.Request) -> bool:
    value = request.headers.get("User-Agent", "")
    return bool(value) and not value.startswith("python-httpx/")


def user_agent_middleware(user_agent: str) -> Middleware:
    def wrap(inner: httpx.BaseTransport) -> httpx.BaseTransport:
        def handle(request: httpx.Request) -> httpx.Response:
            if user_agent and not _has_explicit_user_agent(request):
                request = copy_request(request)
                request.headers["User-Agent"] = user_agent
            return inner.handle_request(request)

        return TransportFunc(handle, inner)

    return wrap


__all__ = [
    "Handler",
    "Middleware",
    "TransportFunc",
    "chain_middleware",
    "copy_request",
    "user_agent_middleware",
]
