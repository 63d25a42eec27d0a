"""Low-level JSON request helper shared by the resource wrappers."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from typing import Any, List, Mapping, Optional, Sequence, Tuple, Union

import httpx

from .context import BodyFactory, Context, attach_context, with_body_factory
from .errors import DecodeError, PipedriveError, error_from_response
from .options import RequestOption, apply_request_options

logger = logging.getLogger("pipedrive_sdk.raw")

QueryParams = Mapping[str, Any]


def _query_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def encode_query(query: Optional[QueryParams]) -> List[Tuple[str, str]]:
    """Flatten a mapping into query pairs; sequences repeat the key, ``None`` is dropped."""
    pairs: List[Tuple[str, str]] = []
    if not query:
        return pairs
    for key, value in query.items():
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            pairs.extend((key, _query_value(item)) for item in value if item is not None)
        else:
            pairs.append((key, _query_value(value)))
    return pairs


def _bounded_timeout(timeout: httpx.Timeout, remaining: float) -> httpx.Timeout:
    def bound(value: Optional[float]) -> float:
        return remaining if value is None else min(value, remaining)

    return httpx.Timeout(
        connect=bound(timeout.connect),
        read=bound(timeout.read),
        write=bound(timeout.write),
        pool=bound(timeout.pool),
    )


class RawClient:
    def __init__(self, base_url: str, http_client: Optional[httpx.Client] = None) -> None:
        try:
            url = httpx.URL(base_url)
        except httpx.InvalidURL as exc:
            raise ValueError(f"parse base url: {exc}") from exc
        if not url.scheme or not url.host:
            raise ValueError("base url must include scheme and host")
        self._base_url = base_url.rstrip("/")
        self._client = http_client if http_client is not None else httpx.Client()

    @property
    def base_url(self) -> str:
        return self._base_url

    def _encode_body(self, body: Any) -> Tuple[Union[bytes, Iterator[bytes], None], bool]:
        if body is None:
            return None, False
        if isinstance(body, (bytes, bytearray)):
            return bytes(body), False
        if isinstance(body, Iterator):
            return body, False
        try:
            encoded = json.dumps(body, separators=(",", ":")).encode("utf-8")
        except (TypeError, ValueError) as exc:
            raise PipedriveError(f"encode json body: {exc}") from exc
        return encoded, True

    def do(
        self,
        ctx: Optional[Context],
        method: str,
        path: str,
        *,
        query: Optional[QueryParams] = None,
        body: Any = None,
        body_factory: Optional[BodyFactory] = None,
        options: Sequence[RequestOption] = (),
    ) -> Any:
        """Send one logical request and return the decoded JSON body.

        Raises:
            APIError / RateLimitError: non-2xx response.
            DecodeError: 2xx response whose body is not valid JSON.
            ContextError: the call context was cancelled or its deadline passed.
            httpx.TransportError: network failure.
        """
        ctx, editors = apply_request_options(ctx, *options)
        ctx.raise_if_done()

        content, is_json = self._encode_body(body)
        headers = {"Accept": "application/json"}
        if is_json:
            headers["Content-Type"] = "application/json"

        timeout: Any = httpx.USE_CLIENT_DEFAULT
        remaining = ctx.remaining()
        if remaining is not None:
            timeout = _bounded_timeout(self._client.timeout, remaining)

        request = self._client.build_request(
            method.upper(),
            f"{self._base_url}/{path.lstrip('/')}",
            params=encode_query(query),
            content=content,
            headers=headers,
            timeout=timeout,
        )
        for editor in editors:
            editor(ctx, request)
        attach_context(request, ctx)
        if body_factory is not None:
            with_body_factory(request, body_factory)

        try:
            response = self._client.send(request)
        except httpx.TransportError as exc:
            ctx_error = ctx.err()
            if ctx_error is not None:
                raise ctx_error from exc
            raise

        ctx_error = ctx.err()
        if ctx_error is not None:
            response.close()
            raise ctx_error

        payload = response.content
        if not response.is_success:
            raise error_from_response(response, payload)

        if not payload:
            return None
        try:
            return json.loads(payload)
        except ValueError as exc:
            logger.warning(
                "Malformed JSON in %s %s response status=%s",
                request.method,
                request.url,
                response.status_code,
            )
            raise DecodeError(f"decode response json: {exc}") from exc


__all__ = ["QueryParams", "RawClient", "encode_query"]
