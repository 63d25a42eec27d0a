from __future__ import annotations

from typing import List, Optional, Tuple

import pytest

from pipedrive_sdk.context import Context
from pipedrive_sdk.pager import CursorPager


class PageStub:
    def __init__(self, pages: List[Tuple[List[str], Optional[str]]]) -> None:
        self.pages = pages
        self.cursors: List[Optional[str]] = []

    def __call__(self, ctx: Context, cursor: Optional[str]) -> Tuple[List[str], Optional[str]]:
        self.cursors.append(cursor)
        return self.pages[len(self.cursors) - 1]


def test_iterates_pages_until_cursor_runs_out() -> None:
    fetch = PageStub([(["a"], "c2"), (["b"], None)])
    pager = CursorPager(fetch)

    assert pager.next(Context.background()) is True
    assert pager.items == ["a"]
    assert pager.next(Context.background()) is True
    assert pager.items == ["b"]
    assert pager.next(Context.background()) is False

    assert fetch.cursors == [None, "c2"]
    assert pager.err is None


def test_single_page_without_cursor() -> None:
    fetch = PageStub([([], None)])
    pager = CursorPager(fetch)

    assert pager.next() is True
    assert pager.items == []
    assert pager.next() is False
    assert len(fetch.cursors) == 1


def test_empty_cursor_ends_iteration() -> None:
    fetch = PageStub([(["a"], "")])
    pager = CursorPager(fetch)

    assert pager.next() is True
    assert pager.next() is False
    assert fetch.cursors == [None]


def test_fetch_error_is_terminal_and_cached() -> None:
    calls: List[Optional[str]] = []
    boom = RuntimeError("fetch failed")

    def fetch(ctx: Context, cursor: Optional[str]) -> Tuple[List[int], Optional[str]]:
        calls.append(cursor)
        if cursor is None:
            return [1], "next"
        raise boom

    pager = CursorPager(fetch)

    assert pager.next() is True
    assert pager.next() is False
    assert pager.err is boom
    assert pager.next() is False
    assert calls == [None, "next"]


def test_for_each_visits_every_item() -> None:
    fetch = PageStub([(["a", "b"], "c2"), (["c"], None)])
    seen: List[str] = []

    CursorPager(fetch).for_each(Context.background(), seen.append)

    assert seen == ["a", "b", "c"]


def test_for_each_stops_on_callback_error() -> None:
    fetch = PageStub([(["a", "b"], "c2"), (["c"], None)])
    seen: List[str] = []

    def visit(item: str) -> None:
        seen.append(item)
        if item == "a":
            raise ValueError("stop")

    with pytest.raises(ValueError, match="stop"):
        CursorPager(fetch).for_each(None, visit)

    assert seen == ["a"]
    assert fetch.cursors == [None]


def test_for_each_raises_fetch_error() -> None:
    def fetch(ctx: Context, cursor: Optional[str]) -> Tuple[List[str], Optional[str]]:
        if cursor is None:
            return ["a"], "c2"
        raise ConnectionError("network down")

    seen: List[str] = []
    pager = CursorPager(fetch)

    with pytest.raises(ConnectionError):
        pager.for_each(None, seen.append)

    assert seen == ["a"]
    assert isinstance(pager.err, ConnectionError)


def test_iter_items_is_lazy() -> None:
    fetch = PageStub([(["a"], "c2"), (["b"], "c3"), (["c"], None)])
    items = CursorPager(fetch).iter_items()

    assert next(items) == "a"
    assert fetch.cursors == [None]
    assert list(items) == ["b", "c"]
    assert fetch.cursors == [None, "c2", "c3"]
