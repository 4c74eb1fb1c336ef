"""
app/connectors/harvest_connector.py

Harvest v2 REST connector for clients and invoices.

Harvest paginates with `page` / `per_page` and reports `total_pages`,
`total_entries` and `next_page` on every response.
"""

from __future__ import annotations

from typing import Any

import requests

from app.config import ExternalHTTPSettings, HarvestSettings
from app.connectors.base import BaseConnector
from app.sync.pagination import Page


class HarvestConnector(BaseConnector):
    def __init__(
        self,
        *,
        settings: HarvestSettings,
        http_settings: ExternalHTTPSettings,
        session: requests.Session | None = None,
    ) -> None:
        super().__init__(source="harvest", http_settings=http_settings, session=session)
        self._settings = settings
        self.page_size = settings.page_size

    def missing_credentials(self) -> list[str]:
        return self._settings.missing_credentials()

    def _auth_headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._settings.access_token or ''}",
            "Harvest-Account-ID": self._settings.account_id or "",
            "User-Agent": self._settings.user_agent,
        }

    def fetch_clients_page(self, page: int | None, per_page: int) -> Page[dict[str, Any]]:
        return self._fetch_page("clients", page or 1, per_page)

    def fetch_invoices_page(self, page: int | None, per_page: int) -> Page[dict[str, Any]]:
        return self._fetch_page("invoices", page or 1, per_page)

    def _fetch_page(self, resource: str, page: int, per_page: int) -> Page[dict[str, Any]]:
        payload = self._request_json(
            method="GET",
            url=f"{self._settings.base_url.rstrip('/')}/{resource}",
            params={"page": page, "per_page": per_page},
        )
        items = payload.get(resource) if isinstance(payload, dict) else None
        if not isinstance(items, list):
            items = []

        next_page = payload.get("next_page") if isinstance(payload, dict) else None
        total_pages = payload.get("total_pages") if isinstance(payload, dict) else None
        if next_page is None and isinstance(total_pages, int) and page < total_pages:
            next_page = page + 1

        total_entries = payload.get("total_entries") if isinstance(payload, dict) else None
        return Page(
            items=[item for item in items if isinstance(item, dict)],
            next_token=next_page,
            total_entries=total_entries if isinstance(total_entries, int) else None,
        )
