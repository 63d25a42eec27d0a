"""Python client for the Pipedrive REST API."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError

from .config import ClientConfig, build_http_client
from .context import BodyFactory, Context
from .errors import DecodeError
from .options import RequestOption
from .pager import CursorPager
from .raw import QueryParams, RawClient

logger = logging.getLogger("pipedrive_sdk.client")


class AdditionalData(BaseModel):
    model_config = ConfigDict(extra="allow")

    next_cursor: Optional[str] = None


class ListEnvelope(BaseModel):
    model_config = ConfigDict(extra="allow")

    success: Optional[bool] = None
    data: Optional[List[Any]] = None
    additional_data: Optional[AdditionalData] = None


class PipedriveClient:
    def __init__(self, config: Optional[ClientConfig] = None, *, http_client: Optional[httpx.Client] = None) -> None:
        self._config = config or ClientConfig()
        self._client = http_client if http_client is not None else build_http_client(self._config)
        self.raw = RawClient(self._config.base_url, self._client)

    def __enter__(self) -> "PipedriveClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def config(self) -> ClientConfig:
        return self._config

    def request(
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
        return self.raw.do(
            ctx,
            method,
            path,
            query=query,
            body=body,
            body_factory=body_factory,
            options=options,
        )

    def list_page(
        self,
        ctx: Optional[Context],
        path: str,
        *,
        query: Optional[QueryParams] = None,
        cursor: Optional[str] = None,
        options: Sequence[RequestOption] = (),
    ) -> Tuple[List[Any], Optional[str]]:
        """Fetch one page of a cursor-paginated collection."""
        params: Dict[str, Any] = dict(query or {})
        if cursor is not None:
            params["cursor"] = cursor

        payload = self.raw.do(ctx, "GET", path, query=params, options=options)
        if payload is None:
            return [], None
        try:
            envelope = ListEnvelope.model_validate(payload)
        except ValidationError as exc:
            raise DecodeError(f"decode list response: {exc}") from exc

        next_cursor = envelope.additional_data.next_cursor if envelope.additional_data else None
        logger.debug("Fetched %s items from %s next_cursor=%s", len(envelope.data or []), path, next_cursor)
        return list(envelope.data or []), next_cursor

    def pager(
        self,
        path: str,
        *,
        query: Optional[QueryParams] = None,
        options: Sequence[RequestOption] = (),
    ) -> CursorPager[Any]:
        """Pager over ``path``; a ``cursor`` already in ``query`` seeds the first fetch."""
        params: Dict[str, Any] = dict(query or {})
        start_cursor = params.pop("cursor", None)

        def fetch(ctx: Context, cursor: Optional[str]) -> Tuple[List[Any], Optional[str]]:
            return self.list_page(
                ctx,
                path,
                query=params,
                cursor=cursor if cursor is not None else start_cursor,
                options=options,
            )

        return CursorPager(fetch)

    def for_each(
        self,
        ctx: Optional[Context],
        path: str,
        fn: Callable[[Any], None],
        *,
        query: Optional[QueryParams] = None,
        options: Sequence[RequestOption] = (),
    ) -> None:
        self.pager(path, query=query, options=options).for_each(ctx, fn)

    def close(self) -> None:
        self._client.close()


__all__ = ["AdditionalData", "ListEnvelope", "PipedriveClient"]
