"""
tests/conftest.py

Shared fixtures: an in-memory SQLite database built from the ORM metadata
and fake API clients that serve pre-built pages.
"""

from __future__ import annotations

from typing import Any, Iterator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import db.models  # noqa: F401  registers all ORM models on Base.metadata
from app.config import HubSpotSettings, SyncSettings
from app.connectors.base import ConnectorRequestError
from app.sync.pagination import Page
from db.base import Base


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture()
def session_factory(engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture()
def db(session_factory) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@pytest.fixture()
def sync_settings() -> SyncSettings:
    return SyncSettings(
        max_items=5000,
        max_stored_errors=500,
        error_display_limit=10,
        stale_run_minutes=120,
        scheduler_enabled=False,
        meeting_notes_auto_post=False,
    )


@pytest.fixture()
def hubspot_settings() -> HubSpotSettings:
    return HubSpotSettings(access_token="token")


# ---------------------------------------------------------------------------
# Fake API clients
# ---------------------------------------------------------------------------


def numbered_pages(items: list[dict[str, Any]], page_size: int, *, first: int = 1) -> dict[Any, Page]:
    """
    Split items into page-number keyed pages the way Harvest and GitHub
    paginate: every page but the last points at the next page number.
    """

    pages: dict[Any, Page] = {}
    chunks = [items[start : start + page_size] for start in range(0, len(items), page_size)] or [[]]
    for index, chunk in enumerate(chunks):
        token = first + index
        is_last = index == len(chunks) - 1
        pages[token] = Page(items=chunk, next_token=None if is_last else token + 1)
    return pages


class FakeConnector:
    """
    Serves pages per resource from a token -> Page (or exception) table and
    records every CRM write.
    """

    def __init__(
        self,
        source: str,
        *,
        page_size: int = 50,
        missing: list[str] | None = None,
        pages: dict[str, dict[Any, Page | BaseException]] | None = None,
    ) -> None:
        self.source = source
        self.page_size = page_size
        self.max_items = 5000
        self.missing = list(missing or [])
        self.pages = pages or {}
        self.page_calls: list[tuple[str, Any]] = []

        self.deals: list[dict[str, Any]] = []
        self.deal_updates: list[tuple[str, dict[str, Any]]] = []
        self.notes: list[dict[str, Any]] = []
        self.releases: dict[str, list[dict[str, Any]]] = {}
        self.fail_writes_with: BaseException | None = None
        self.fail_notes_after: int | None = None

    def missing_credentials(self) -> list[str]:
        return list(self.missing)

    def _serve(self, resource: str, token: Any) -> Page:
        self.page_calls.append((resource, token))
        response = self.pages.get(resource, {}).get(token, Page(items=[]))
        if isinstance(response, BaseException):
            raise response
        return response

    def fetch_clients_page(self, token: Any, size: int) -> Page:
        return self._serve("clients", token)

    def fetch_invoices_page(self, token: Any, size: int) -> Page:
        return self._serve("invoices", token)

    def fetch_companies_page(self, token: Any, size: int) -> Page:
        return self._serve("companies", token)

    def fetch_repositories_page(self, token: Any, size: int) -> Page:
        return self._serve("repositories", token)

    def fetch_transcripts_page(self, token: Any, size: int) -> Page:
        return self._serve("transcripts", token)

    def fetch_channels_page(self, token: Any, size: int) -> Page:
        return self._serve("channels", token)

    def list_releases(self, owner: str, repo: str, *, limit: int | None = None) -> list[dict[str, Any]]:
        key = f"{owner}/{repo}"
        response = self.releases.get(key, [])
        if isinstance(response, BaseException):
            raise response
        return list(response)

    def create_deal(self, properties: dict[str, Any], *, company_id: str) -> str:
        if self.fail_writes_with is not None:
            raise self.fail_writes_with
        self.deals.append({"properties": properties, "company_id": company_id})
        return f"deal-{len(self.deals)}"

    def update_deal(self, deal_id: str, properties: dict[str, Any]) -> None:
        if self.fail_writes_with is not None:
            raise self.fail_writes_with
        self.deal_updates.append((deal_id, properties))

    def create_company_note(self, company_id: str, body: str, *, timestamp: Any) -> str:
        if self.fail_writes_with is not None:
            raise self.fail_writes_with
        if self.fail_notes_after is not None and len(self.notes) >= self.fail_notes_after:
            raise ConnectorRequestError("HubSpot: HTTP 500: boom", status_code=500)
        self.notes.append({"company_id": company_id, "body": body, "timestamp": timestamp})
        return f"note-{len(self.notes)}"


@pytest.fixture()
def harvest() -> FakeConnector:
    return FakeConnector("Harvest", page_size=100)


@pytest.fixture()
def hubspot() -> FakeConnector:
    return FakeConnector("HubSpot", page_size=100)


@pytest.fixture()
def github() -> FakeConnector:
    return FakeConnector("GitHub", page_size=100)


@pytest.fixture()
def fireflies() -> FakeConnector:
    return FakeConnector("Fireflies", page_size=50)


@pytest.fixture()
def slack() -> FakeConnector:
    return FakeConnector("Slack", page_size=200)
