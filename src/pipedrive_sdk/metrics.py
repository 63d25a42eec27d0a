"""Prometheus metrics for outbound API traffic."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

HTTP_ATTEMPTS = Counter(
    "pipedrive_sdk_http_attempts_total",
    "HTTP attempts sent by the retry transport",
    ["method"],
)
HTTP_RETRIES = Counter(
    "pipedrive_sdk_http_retries_total",
    "Attempts that were retried",
    ["method", "status"],
)
RETRY_DELAY = Histogram(
    "pipedrive_sdk_retry_delay_seconds",
    "Delay slept before a retry",
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
)

__all__ = ["HTTP_ATTEMPTS", "HTTP_RETRIES", "RETRY_DELAY"]
