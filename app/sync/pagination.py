"""
app/sync/pagination.py

Generic paginated fetcher.

A page function receives the current token (page number, offset or opaque
cursor) and the requested page size, and returns a `Page`. The fetcher
yields item batches lazily until one of these holds, checked in order:

1. the page carries no next token;
2. the page is shorter than the requested size;
3. the absolute item cap is reached (the last batch is truncated).

A failure on the first page raises `FirstPageFetchError`. A failure on a
later page stops iteration, keeps everything already yielded and is exposed
through `page_error_message`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, Iterator, TypeVar

from app.sync.errors import format_error
from app.sync.exceptions import FirstPageFetchError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Page(Generic[T]):
    items: list[T] = field(default_factory=list)
    next_token: Any | None = None
    total_entries: int | None = None


PageFunction = Callable[[Any, int], Page]


class PaginatedFetcher(Generic[T]):
    """
    Lazy, finite, non-restartable iteration over an external collection.
    """

    def __init__(
        self,
        fetch_page: PageFunction,
        *,
        page_size: int,
        max_items: int,
        first_token: Any = None,
        source: str = "external",
        stop_on_short_page: bool = True,
    ) -> None:
        if page_size < 1:
            raise ValueError("page_size must be at least 1.")
        if max_items < 1:
            raise ValueError("max_items must be at least 1.")
        self.source = source
        self._fetch_page = fetch_page
        self._page_size = page_size
        self._max_items = max_items
        self._first_token = first_token
        # Cursor APIs such as Slack may return fewer items than requested
        # while more pages remain.
        self._stop_on_short_page = stop_on_short_page
        self._started = False

        self.pages_fetched = 0
        self.items_seen = 0
        self.total_reported: int | None = None
        self.cap_reached = False
        self.page_error: BaseException | None = None
        self.page_error_message: str | None = None

    @property
    def found(self) -> int:
        """Best known collection size: server total if reported, else items seen."""
        if self.total_reported is None:
            return self.items_seen
        return max(self.total_reported, self.items_seen)

    def iter_pages(self) -> Iterator[list[T]]:
        if self._started:
            raise RuntimeError(f"{self.source}: paginated fetch already consumed; build a new fetcher per run.")
        self._started = True
        return self._generate()

    def __iter__(self) -> Iterator[list[T]]:
        return self.iter_pages()

    def fetch_all(self) -> list[T]:
        items: list[T] = []
        for batch in self.iter_pages():
            items.extend(batch)
        return items

    def _generate(self) -> Iterator[list[T]]:
        token = self._first_token
        page_number = 0
        while True:
            page_number += 1
            try:
                page = self._fetch_page(token, self._page_size)
            except Exception as exc:  # noqa: BLE001
                if page_number == 1:
                    raise FirstPageFetchError(self.source, exc) from exc
                self.page_error = exc
                self.page_error_message = format_error(f"Error fetching page {page_number}", exc)
                logger.warning(
                    "Paginated fetch stopped source=%s page=%s items_kept=%s error=%s",
                    self.source,
                    page_number,
                    self.items_seen,
                    exc,
                )
                return

            self.pages_fetched = page_number
            if page_number == 1 and page.total_entries is not None:
                self.total_reported = page.total_entries

            received = list(page.items)
            remaining = self._max_items - self.items_seen
            at_cap = len(received) >= remaining
            batch = received[:remaining] if at_cap else received
            self.items_seen += len(batch)
            if batch:
                yield batch

            if page.next_token is None or not received:
                return
            if self._stop_on_short_page and len(received) < self._page_size:
                return
            if at_cap:
                self.cap_reached = True
                logger.warning(
                    "Paginated fetch reached item cap source=%s max_items=%s pages=%s",
                    self.source,
                    self._max_items,
                    page_number,
                )
                return
            token = page.next_token
