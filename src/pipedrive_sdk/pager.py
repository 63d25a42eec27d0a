"""Lazy iteration over cursor-paginated list endpoints."""

from __future__ import annotations

from typing import Callable, Generic, Iterator, List, Optional, Sequence, Tuple, TypeVar

from .context import Context

T = TypeVar("T")

FetchPage = Callable[[Context, Optional[str]], Tuple[Sequence[T], Optional[str]]]


class CursorPager(Generic[T]):
    """Drives a single-page fetch function across all pages.

    ``fetch(ctx, cursor)`` returns ``(items, next_cursor)`` and raises on
    failure. The first fetch gets ``cursor=None``; a page without a next
    cursor is the last one. A failed fetch is terminal: the exception is kept
    in :attr:`err` and later calls to :meth:`next` return ``False`` without
    fetching. Only the current page is held in memory.

    Not safe for concurrent use; give each consumer its own pager.
    """

    def __init__(self, fetch: FetchPage[T]) -> None:
        self._fetch = fetch
        self._cursor: Optional[str] = None
        self._started = False
        self._items: List[T] = []
        self._err: Optional[BaseException] = None

    @property
    def items(self) -> List[T]:
        return self._items

    @property
    def err(self) -> Optional[BaseException]:
        return self._err

    @property
    def cursor(self) -> Optional[str]:
        return self._cursor

    def next(self, ctx: Optional[Context] = None) -> bool:
        if self._err is not None:
            return False
        if self._started and self._cursor is None:
            return False
        self._started = True

        try:
            items, next_cursor = self._fetch(ctx or Context.background(), self._cursor)
        except Exception as exc:
            self._err = exc
            self._items = []
            return False

        self._items = list(items or [])
        # An empty cursor would restart from the first page.
        self._cursor = next_cursor or None
        return True

    def iter_items(self, ctx: Optional[Context] = None) -> Iterator[T]:
        while self.next(ctx):
            yield from self._items
        if self._err is not None:
            raise self._err

    def for_each(self, ctx: Optional[Context], fn: Callable[[T], None]) -> None:
        """Call ``fn`` on every item; stops at the first exception and re-raises it."""
        for item in self.iter_items(ctx):
            fn(item)


__all__ = ["CursorPager", "FetchPage"]
