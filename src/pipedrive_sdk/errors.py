"""Typed errors for non-2xx API responses and header parsing helpers."""

from __future__ import annotations

import json
import logging
import re
from datetime import datetime, timedelta, timezone
from email.utils import parsedate_to_datetime
from typing import Optional

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError

logger = logging.getLogger("pipedrive_sdk.errors")

# Reset values above this are Unix milliseconds rather than seconds.
_MILLIS_THRESHOLD = 1_000_000_000_000
_DECIMAL = re.compile(r"[+-]?[0-9]+")


class PipedriveError(Exception):
    """Base exception for all errors raised by this package."""


class DecodeError(PipedriveError):
    """Raised when a successful response body is not valid JSON."""


class APIError(PipedriveError):
    def __init__(
        self,
        status: int,
        code: str = "",
        message: str = "",
        body: bytes = b"",
        request_id: str = "",
    ) -> None:
        self.status = status
        self.code = code
        self.message = message
        self.body = body
        self.request_id = request_id
        super().__init__(self._describe())

    def _describe(self) -> str:
        if self.code and self.message:
            return f"pipedrive: http {self.status} {self.code}: {self.message}"
        if self.message:
            return f"pipedrive: http {self.status}: {self.message}"
        if self.code:
            return f"pipedrive: http {self.status} {self.code}"
        return f"pipedrive: http {self.status}"


class RateLimitError(APIError):
    """HTTP 429 with the rate-limit headers the server sent alongside it."""

    def __init__(
        self,
        status: int,
        code: str = "",
        message: str = "",
        body: bytes = b"",
        request_id: str = "",
        *,
        retry_after: float = 0.0,
        limit: int = 0,
        remaining: int = 0,
        reset: Optional[datetime] = None,
    ) -> None:
        self.retry_after = retry_after
        self.limit = limit
        self.remaining = remaining
        self.reset = reset
        super().__init__(status, code=code, message=message, body=body, request_id=request_id)

    def _describe(self) -> str:
        base = super()._describe()
        if self.retry_after > 0:
            return f"{base} (retry after {self.retry_after:g}s)"
        return base


class ErrorPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    code: Optional[str] = None
    message: Optional[str] = None
    error: Optional[str] = None
    error_info: Optional[str] = None


def _parse_error_payload(body: bytes) -> Optional[ErrorPayload]:
    if not body:
        return None
    try:
        data = json.loads(body)
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None
    try:
        return ErrorPayload.model_validate(data)
    except ValidationError:
        logger.debug("Error body did not match the error envelope")
        return None


def api_error_from_response(response: httpx.Response, body: bytes) -> APIError:
    code = ""
    message = ""
    payload = _parse_error_payload(body)
    if payload is not None:
        code = payload.code or ""
        message = payload.message or payload.error or ""
    return APIError(
        response.status_code,
        code=code,
        message=message,
        body=body,
        request_id=response.headers.get("X-Request-Id", ""),
    )


def rate_limit_error_from_response(
    response: httpx.Response,
    body: bytes,
    now: Optional[datetime] = None,
) -> RateLimitError:
    base = api_error_from_response(response, body)
    headers = response.headers
    return RateLimitError(
        base.status,
        code=base.code,
        message=base.message,
        body=base.body,
        request_id=base.request_id,
        retry_after=parse_retry_after(headers.get("Retry-After", ""), now),
        limit=parse_int_header(headers.get("X-RateLimit-Limit", "")),
        remaining=parse_int_header(headers.get("X-RateLimit-Remaining", "")),
        reset=parse_reset_header(headers.get("X-RateLimit-Reset", "")),
    )


def error_from_response(
    response: httpx.Response,
    body: bytes,
    now: Optional[datetime] = None,
) -> APIError:
    if response.status_code == 429:
        return rate_limit_error_from_response(response, body, now)
    return api_error_from_response(response, body)


def _parse_http_date(value: str) -> Optional[datetime]:
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return None
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _parse_decimal(value: str) -> Optional[int]:
    # Optional sign and ASCII digits.
    if not _DECIMAL.fullmatch(value):
        return None
    return int(value)


def parse_retry_after(value: Optional[str], now: Optional[datetime] = None) -> float:
    """Return the Retry-After delay in seconds, or 0 when absent or unusable."""
    if not value:
        return 0.0
    value = value.strip()
    seconds = _parse_decimal(value)
    if seconds is not None:
        return float(seconds) if seconds >= 0 else 0.0

    when = _parse_http_date(value)
    if when is None:
        return 0.0
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    delta = (when - now).total_seconds()
    return delta if delta > 0 else 0.0


def parse_int_header(value: Optional[str]) -> int:
    if not value:
        return 0
    number = _parse_decimal(value.strip())
    return 0 if number is None else number


def parse_reset_header(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    value = value.strip()
    stamp = _parse_decimal(value)
    if stamp is not None:
        try:
            if stamp > _MILLIS_THRESHOLD:
                seconds, millis = divmod(stamp, 1000)
                return datetime.fromtimestamp(seconds, tz=timezone.utc) + timedelta(milliseconds=millis)
            return datetime.fromtimestamp(stamp, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None

    when = _parse_http_date(value)
    if when is None:
        return None
    return when.astimezone(timezone.utc)


__all__ = [
    "APIError",
    "DecodeError",
    "ErrorPayload",
    "PipedriveError",
    "RateLimitError",
    "api_error_from_response",
    "error_from_response",
    "parse_int_header",
    "parse_reset_header",
    "parse_retry_after",
    "rate_limit_error_from_response",
]
