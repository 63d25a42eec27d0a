"""Pipedrive Python SDK."""

from .auth import APITokenAuth, AuthProvider, MultiAuth, OAuth2Auth, StaticTokenSource
from .client import PipedriveClient
from .config import ClientConfig, build_http_client, build_transport
from .context import Context, ContextCancelled, ContextError, DeadlineExceeded, with_body_factory
from .errors import APIError, DecodeError, PipedriveError, RateLimitError
from .middleware import Middleware, TransportFunc, chain_middleware
from .options import apply_request_options, with_header, with_no_retry, with_request_editor, with_retry_policy
from .pager import CursorPager
from .raw import RawClient
from .retry import RetryPolicy, RetryTransport, default_retry_policy, full_jitter, sanitize_retry_policy

__all__ = [
    "APIError",
    "APITokenAuth",
    "AuthProvider",
    "ClientConfig",
    "Context",
    "ContextCancelled",
    "ContextError",
    "CursorPager",
    "DeadlineExceeded",
    "DecodeError",
    "Middleware",
    "MultiAuth",
    "OAuth2Auth",
    "PipedriveClient",
    "PipedriveError",
    "RateLimitError",
    "RawClient",
    "RetryPolicy",
    "RetryTransport",
    "StaticTokenSource",
    "TransportFunc",
    "apply_request_options",
    "build_http_client",
    "build_transport",
    "chain_middleware",
    "default_retry_policy",
    "full_jitter",
    "sanitize_retry_policy",
    "with_body_factory",
    "with_header",
    "with_no_retry",
    "with_request_editor",
    "with_retry_policy",
]
