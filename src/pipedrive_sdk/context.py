"""Per-call context: cancellation, deadlines and retry overrides."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Callable, Iterable, Optional, Tuple, Union

import httpx

from .errors import PipedriveError

if TYPE_CHECKING:
    from .retry import RetryPolicy

CONTEXT_EXTENSION = "pipedrive.context"
BODY_FACTORY_EXTENSION = "pipedrive.get_body"

# Longest single Event.wait; longer sleeps loop.
_MAX_WAIT = 3600.0

BodyFactory = Callable[[], Union[bytes, Iterable[bytes]]]


class ContextError(PipedriveError):
    """Base class for errors raised when a call context is done."""


class ContextCancelled(ContextError):
    def __init__(self) -> None:
        super().__init__("pipedrive: context cancelled")


class DeadlineExceeded(ContextError):
    def __init__(self) -> None:
        super().__init__("pipedrive: context deadline exceeded")


@dataclass(frozen=True)
class Context:
    """Immutable call context.

    Derived contexts share the parent's cancellation event, so cancelling a
    parent cancels every context derived from it. Deadlines are expressed on
    the ``time.monotonic`` clock and can only shrink when deriving.
    """

    deadline: Optional[float] = None
    no_retry: bool = False
    retry_policy: Optional["RetryPolicy"] = None
    _cancelled: threading.Event = field(default_factory=threading.Event, repr=False, compare=False)

    @classmethod
    def background(cls) -> "Context":
        return cls()

    def with_cancel(self) -> Tuple["Context", Callable[[], None]]:
        child_event = threading.Event()
        parent_event = self._cancelled

        # err() checks the parent events too.
        child = _LinkedContext(
            deadline=self.deadline,
            no_retry=self.no_retry,
            retry_policy=self.retry_policy,
            _cancelled=child_event,
            _parents=self._events() + (parent_event,),
        )
        return child, child_event.set

    def with_deadline(self, deadline: float) -> "Context":
        if self.deadline is not None and self.deadline <= deadline:
            return self
        return replace(self, deadline=deadline)

    def with_timeout(self, seconds: float) -> "Context":
        return self.with_deadline(time.monotonic() + seconds)

    def with_no_retry(self) -> "Context":
        return replace(self, no_retry=True)

    def with_retry_policy(self, policy: "RetryPolicy") -> "Context":
        return replace(self, retry_policy=policy)

    def _events(self) -> Tuple[threading.Event, ...]:
        return ()

    def _is_cancelled(self) -> bool:
        return self._cancelled.is_set() or any(event.is_set() for event in self._events())

    def remaining(self) -> Optional[float]:
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def err(self) -> Optional[ContextError]:
        if self._is_cancelled():
            return ContextCancelled()
        if self.deadline is not None and time.monotonic() >= self.deadline:
            return DeadlineExceeded()
        return None

    def raise_if_done(self) -> None:
        error = self.err()
        if error is not None:
            raise error

    def sleep(self, seconds: float) -> None:
        """Block for ``seconds`` unless the context is cancelled or expires first."""
        self.raise_if_done()
        if seconds <= 0:
            return
        end = time.monotonic() + seconds
        while True:
            now = time.monotonic()
            wait_for = end - now
            if self.deadline is not None:
                if self.deadline - now < wait_for:
                    wait_for = self.deadline - now
            if wait_for <= 0:
                break
            wait_for = min(wait_for, _MAX_WAIT)
            # Linked parents are polled, so cap each wait.
            if self._events():
                wait_for = min(wait_for, 0.05)
            if self._cancelled.wait(wait_for):
                break
            self.raise_if_done()
        self.raise_if_done()


@dataclass(frozen=True)
class _LinkedContext(Context):
    _parents: Tuple[threading.Event, ...] = field(default=(), repr=False, compare=False)

    def _events(self) -> Tuple[threading.Event, ...]:
        return self._parents


def attach_context(request: httpx.Request, ctx: Optional[Context]) -> httpx.Request:
    if ctx is not None:
        request.extensions[CONTEXT_EXTENSION] = ctx
    return request


def context_from_request(request: httpx.Request) -> Context:
    ctx = request.extensions.get(CONTEXT_EXTENSION)
    if isinstance(ctx, Context):
        return ctx
    return Context.background()


def with_body_factory(request: httpx.Request, factory: BodyFactory) -> httpx.Request:
    """Register a callable that re-creates the request body for retries."""
    request.extensions[BODY_FACTORY_EXTENSION] = factory
    return request


def body_factory_from_request(request: httpx.Request) -> Optional[BodyFactory]:
    factory = request.extensions.get(BODY_FACTORY_EXTENSION)
    if callable(factory):
        return factory
    return None


__all__ = [
    "BODY_FACTORY_EXTENSION",
    "BodyFactory",
    "CONTEXT_EXTENSION",
    "Context",
    "ContextCancelled",
    "ContextError",
    "DeadlineExceeded",
    "attach_context",
    "body_factory_from_request",
    "context_from_request",
    "with_body_factory",
]
