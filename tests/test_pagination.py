"""
tests/test_pagination.py

Pytest unit tests for PaginatedFetcher termination and failure handling.
"""

from __future__ import annotations

import pytest

from app.connectors.base import ConnectorRequestError
from app.sync.exceptions import FirstPageFetchError
from app.sync.pagination import Page, PaginatedFetcher


class ScriptedPages:
    """Page function that returns scripted sizes and counts its calls."""

    def __init__(self, sizes: list[int], *, total: int | None = None, fail_at: int | None = None) -> None:
        self.sizes = sizes
        self.total = total
        self.fail_at = fail_at
        self.calls: list[int] = []

    def __call__(self, token: int, page_size: int) -> Page:
        self.calls.append(token)
        if self.fail_at is not None and token == self.fail_at:
            raise ConnectorRequestError("Harvest: HTTP 503: unavailable", status_code=503)
        index = token - 1
        if index >= len(self.sizes):
            return Page(items=[], next_token=None)
        items = [{"id": f"{token}-{n}"} for n in range(self.sizes[index])]
        return Page(items=items, next_token=token + 1, total_entries=self.total)


def _fetcher(pages: ScriptedPages, *, page_size: int = 50, max_items: int = 5000, **kwargs) -> PaginatedFetcher:
    return PaginatedFetcher(
        pages,
        page_size=page_size,
        max_items=max_items,
        first_token=1,
        source="Harvest",
        **kwargs,
    )


# ---------------------------------------------------------------------------
# Termination
# ---------------------------------------------------------------------------


class TestTermination:
    def test_short_page_stops_without_extra_request(self) -> None:
        pages = ScriptedPages([50, 50, 12])
        fetcher = _fetcher(pages)

        items = fetcher.fetch_all()

        assert len(items) == 112
        assert pages.calls == [1, 2, 3]
        assert fetcher.pages_fetched == 3
        assert fetcher.cap_reached is False

    def test_full_pages_stop_at_cap(self) -> None:
        pages = ScriptedPages([50] * 10)
        fetcher = _fetcher(pages, max_items=120)

        items = fetcher.fetch_all()

        assert len(items) == 120
        assert pages.calls == [1, 2, 3]
        assert fetcher.cap_reached is True

    def test_cap_on_page_boundary(self) -> None:
        pages = ScriptedPages([50] * 10)
        fetcher = _fetcher(pages, max_items=100)

        assert len(fetcher.fetch_all()) == 100
        assert pages.calls == [1, 2]

    def test_missing_next_token_stops(self) -> None:
        calls: list[object] = []

        def fetch(token, size):
            calls.append(token)
            return Page(items=[{"id": 1}, {"id": 2}], next_token=None)

        fetcher = PaginatedFetcher(fetch, page_size=2, max_items=100, source="Slack")
        assert len(fetcher.fetch_all()) == 2
        assert calls == [None]

    def test_empty_page_stops_even_without_short_page_rule(self) -> None:
        cursors = {None: Page(items=[{"id": 1}], next_token="c1"), "c1": Page(items=[], next_token="c2")}
        calls: list[object] = []

        def fetch(token, size):
            calls.append(token)
            return cursors[token]

        fetcher = PaginatedFetcher(fetch, page_size=200, max_items=100, source="Slack", stop_on_short_page=False)
        assert len(fetcher.fetch_all()) == 1
        assert calls == [None, "c1"]

    def test_cursor_pages_continue_when_short_pages_allowed(self) -> None:
        cursors = {
            None: Page(items=[{"id": 1}], next_token="c1"),
            "c1": Page(items=[{"id": 2}], next_token=None),
        }
        fetcher = PaginatedFetcher(
            lambda token, size: cursors[token],
            page_size=200,
            max_items=100,
            source="Slack",
            stop_on_short_page=False,
        )
        assert [item["id"] for item in fetcher.fetch_all()] == [1, 2]

    def test_found_prefers_reported_total(self) -> None:
        pages = ScriptedPages([50, 10], total=60)
        fetcher = _fetcher(pages)
        fetcher.fetch_all()
        assert fetcher.found == 60

    def test_not_restartable(self) -> None:
        fetcher = _fetcher(ScriptedPages([3]))
        fetcher.fetch_all()
        with pytest.raises(RuntimeError):
            fetcher.fetch_all()

    def test_invalid_page_size(self) -> None:
        with pytest.raises(ValueError):
            PaginatedFetcher(lambda token, size: Page(), page_size=0, max_items=10)


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------


class TestFailures:
    def test_first_page_failure_raises(self) -> None:
        fetcher = _fetcher(ScriptedPages([50], fail_at=1))
        with pytest.raises(FirstPageFetchError) as ctx:
            fetcher.fetch_all()
        assert ctx.value.source == "Harvest"
        assert isinstance(ctx.value.cause, ConnectorRequestError)

    def test_later_page_failure_keeps_items(self) -> None:
        pages = ScriptedPages([50, 50, 50], fail_at=2)
        fetcher = _fetcher(pages)

        items = fetcher.fetch_all()

        assert len(items) == 50
        assert fetcher.page_error is not None
        assert fetcher.page_error_message == "Error fetching page 2: Harvest: HTTP 503: unavailable"
