"""Retry transport with exponential backoff, full jitter and Retry-After support."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Callable, Optional

import httpx

from .context import BodyFactory, Context, body_factory_from_request, context_from_request
from .errors import parse_retry_after
from .metrics import HTTP_ATTEMPTS, HTTP_RETRIES, RETRY_DELAY
from .middleware import Middleware

logger = logging.getLogger("pipedrive_sdk.retry")

IDEMPOTENT_METHODS = frozenset({"GET", "HEAD", "PUT", "DELETE", "OPTIONS", "TRACE"})
RETRYABLE_GATEWAY_STATUSES = frozenset({502, 503, 504})

_DRAIN_LIMIT = 1 << 20
_MAX_BACKOFF_EXPONENT = 62

Jitter = Callable[[float], float]
SleepFunc = Callable[[Context, float], None]
NowFunc = Callable[[], datetime]


def full_jitter(delay: float) -> float:
    if delay <= 0:
        return 0.0
    return random.random() * delay


def _no_jitter(delay: float) -> float:
    return delay


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry settings. Delays are in seconds."""

    max_attempts: int = 1
    base_delay: float = 0.0
    max_delay: float = 0.0
    jitter: Optional[Jitter] = None
    retry_all_methods: bool = False


def default_retry_policy() -> RetryPolicy:
    return RetryPolicy(
        max_attempts=4,
        base_delay=0.2,
        max_delay=5.0,
        jitter=full_jitter,
        retry_all_methods=False,
    )


def sanitize_retry_policy(policy: RetryPolicy) -> RetryPolicy:
    max_attempts = policy.max_attempts if policy.max_attempts > 0 else 1
    base_delay = policy.base_delay if policy.base_delay > 0 else 0.0
    max_delay = policy.max_delay if policy.max_delay > 0 else base_delay
    return replace(
        policy,
        max_attempts=max_attempts,
        base_delay=base_delay,
        max_delay=max_delay,
        jitter=policy.jitter or _no_jitter,
    )


def is_idempotent_method(method: str) -> bool:
    return method.upper() in IDEMPOTENT_METHODS


def _sleep_with_context(ctx: Context, seconds: float) -> None:
    ctx.sleep(seconds)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _clone_request(request: httpx.Request, factory: Optional[BodyFactory]) -> httpx.Request:
    headers = request.headers.copy()
    extensions = dict(request.extensions)
    if factory is None:
        return httpx.Request(
            request.method,
            request.url,
            headers=headers,
            stream=request.stream,
            extensions=extensions,
        )
    return httpx.Request(
        request.method,
        request.url,
        headers=headers,
        content=factory(),
        extensions=extensions,
    )


def _bound_timeout(request: httpx.Request, ctx: Context) -> None:
    remaining = ctx.remaining()
    if remaining is None:
        return
    timeout = request.extensions.get("timeout") or {}
    request.extensions["timeout"] = {
        key: remaining if timeout.get(key) is None else min(timeout[key], remaining)
        for key in ("connect", "read", "write", "pool")
    }


def _drain_and_close(response: httpx.Response) -> None:
    try:
        if not response.is_closed and not response.is_stream_consumed:
            read = 0
            for chunk in response.iter_raw():
                read += len(chunk)
                if read >= _DRAIN_LIMIT:
                    break
    except httpx.HTTPError as exc:
        logger.debug("Failed to drain discarded response body: %s", exc)
    finally:
        response.close()


class RetryTransport(httpx.BaseTransport):
    """Retries rate-limited and gateway-failed requests.

    Only responses are ever retried: exceptions raised by the inner transport
    propagate on the first occurrence. A request is retried only when its body
    can be sent again, i.e. it is held in memory or a body factory was
    registered with :func:`pipedrive_sdk.context.with_body_factory`.

    The per-call :class:`~pipedrive_sdk.context.Context` attached to the
    request may disable retries or replace the policy for that call only.
    """

    def __init__(
        self,
        inner: Optional[httpx.BaseTransport] = None,
        policy: Optional[RetryPolicy] = None,
        *,
        sleep: Optional[SleepFunc] = None,
        now: Optional[NowFunc] = None,
    ) -> None:
        self._inner = inner if inner is not None else httpx.HTTPTransport()
        self._policy = sanitize_retry_policy(policy if policy is not None else default_retry_policy())
        self._sleep = sleep or _sleep_with_context
        self._now = now or _utcnow

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        ctx = context_from_request(request)
        policy = self._policy
        if ctx.retry_policy is not None:
            policy = sanitize_retry_policy(ctx.retry_policy)

        if ctx.no_retry or policy.max_attempts <= 1:
            return self._send(request, ctx)

        factory = body_factory_from_request(request)
        replayable = factory is not None or isinstance(request.stream, httpx.ByteStream)

        for attempt in range(1, policy.max_attempts + 1):
            attempt_request = request if attempt == 1 else _clone_request(request, factory)
            response = self._send(attempt_request, ctx)
            if not self._should_retry(attempt, attempt_request, replayable, response, policy):
                return response

            _drain_and_close(response)
            delay = self._next_delay(attempt, response, policy)

            HTTP_RETRIES.labels(method=request.method, status=str(response.status_code)).inc()
            logger.info(
                "Retrying %s %s after status=%s attempt=%s/%s delay=%.3fs",
                request.method,
                request.url,
                response.status_code,
                attempt,
                policy.max_attempts,
                delay,
            )
            if delay > 0:
                RETRY_DELAY.observe(delay)
                self._sleep(ctx, delay)
            ctx.raise_if_done()

        return self._send(_clone_request(request, factory), ctx)

    def _send(self, request: httpx.Request, ctx: Context) -> httpx.Response:
        # Each attempt gets only what is left of the call deadline.
        _bound_timeout(request, ctx)
        HTTP_ATTEMPTS.labels(method=request.method).inc()
        return self._inner.handle_request(request)

    def _should_retry(
        self,
        attempt: int,
        request: httpx.Request,
        replayable: bool,
        response: Optional[httpx.Response],
        policy: RetryPolicy,
    ) -> bool:
        if response is None:
            return False
        if attempt >= policy.max_attempts:
            return False

        status = response.status_code
        if status == 429:
            return replayable
        if status in RETRYABLE_GATEWAY_STATUSES:
            if not replayable:
                return False
            return policy.retry_all_methods or is_idempotent_method(request.method)
        return False

    def _next_delay(self, attempt: int, response: httpx.Response, policy: RetryPolicy) -> float:
        if response.status_code == 429:
            retry_after = parse_retry_after(response.headers.get("Retry-After"), self._now())
            if retry_after > 0:
                return retry_after

        if policy.base_delay <= 0:
            return 0.0

        exponent = min(attempt - 1, _MAX_BACKOFF_EXPONENT)
        delay = min(policy.base_delay * (2 ** exponent), policy.max_delay)
        jitter = policy.jitter or _no_jitter
        return jitter(delay)

    def close(self) -> None:
        self._inner.close()


def retry_middleware(policy: Optional[RetryPolicy] = None) -> Middleware:
    def wrap(inner: httpx.BaseTransport) -> httpx.BaseTransport:
        return RetryTransport(inner, policy)

    return wrap


__all__ = [
    "IDEMPOTENT_METHODS",
    "RetryPolicy",
    "RetryTransport",
    "default_retry_policy",
    "full_jitter",
    "is_idempotent_method",
    "retry_middleware",
    "sanitize_retry_policy",
]
