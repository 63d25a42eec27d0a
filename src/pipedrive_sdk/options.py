"""Per-call request options."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

import httpx

from .context import Context
from .retry import RetryPolicy

RequestEditor = Callable[[Context, httpx.Request], None]


@dataclass
class _RequestOptions:
    headers: Dict[str, str] = field(default_factory=dict)
    editors: List[RequestEditor] = field(default_factory=list)
    no_retry: bool = False
    retry_policy: Optional[RetryPolicy] = None


RequestOption = Callable[[_RequestOptions], None]


def with_header(key: str, value: str) -> RequestOption:
    def apply(options: _RequestOptions) -> None:
        options.headers[key] = value

    return apply


def with_request_editor(editor: Optional[RequestEditor]) -> RequestOption:
    def apply(options: _RequestOptions) -> None:
        if editor is not None:
            options.editors.append(editor)

    return apply


def with_no_retry() -> RequestOption:
    def apply(options: _RequestOptions) -> None:
        options.no_retry = True

    return apply


def with_retry_policy(policy: RetryPolicy) -> RequestOption:
    def apply(options: _RequestOptions) -> None:
        options.retry_policy = policy

    return apply


def apply_request_options(
    ctx: Optional[Context],
    *opts: Optional[RequestOption],
) -> Tuple[Context, List[RequestEditor]]:
    """Fold options into a derived context plus the request editors to run."""
    if ctx is None:
        ctx = Context.background()

    options = _RequestOptions()
    for opt in opts:
        if opt is None:
            continue
        opt(options)

    if options.no_retry:
        ctx = ctx.with_no_retry()
    if options.retry_policy is not None:
        ctx = ctx.with_retry_policy(options.retry_policy)

    editors: List[RequestEditor] = []
    if options.headers:
        headers = dict(options.headers)

        def set_headers(_: Context, request: httpx.Request) -> None:
            for key, value in headers.items():
                request.headers[key] = value

        editors.append(set_headers)
    editors.extend(options.editors)
    return ctx, editors


__all__ = [
    "RequestEditor",
    "RequestOption",
    "apply_request_options",
    "with_header",
    "with_no_retry",
    "with_request_editor",
    "with_retry_policy",
]
