"""
app/connectors/fireflies_connector.py

Fireflies GraphQL connector for meeting transcripts.

Transcripts are paged with `limit` / `skip`; the page token is the offset.
GraphQL errors arrive with HTTP 200 and are raised as connector errors.
"""

from __future__ import annotations

from typing import Any

import requests

from app.config import ExternalHTTPSettings, FirefliesSettings
from app.connectors.base import BaseConnector, ConnectorRequestError
from app.sync.pagination import Page

TRANSCRIPTS_QUERY = """
query Transcripts($limit: Int, $skip: Int) {
  transcripts(limit: $limit, skip: $skip) {
    id
    title
    transcript_url
    summary {
      action_items
      outline
      keywords
      overview
    }
    participants
    duration
    date
  }
}
"""


class FirefliesConnector(BaseConnector):
    def __init__(
        self,
        *,
        settings: FirefliesSettings,
        http_settings: ExternalHTTPSettings,
        session: requests.Session | None = None,
    ) -> None:
        super().__init__(source="fireflies", http_settings=http_settings, session=session)
        self._settings = settings
        self.page_size = settings.page_size
        self.max_items = settings.max_items

    def missing_credentials(self) -> list[str]:
        return self._settings.missing_credentials()

    def _auth_headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._settings.api_key or ''}",
            "Content-Type": "application/json",
        }

    def fetch_transcripts_page(self, skip: int | None, limit: int) -> Page[dict[str, Any]]:
        offset = skip or 0
        data = self._graphql(TRANSCRIPTS_QUERY, {"limit": limit, "skip": offset})
        transcripts = data.get("transcripts") if isinstance(data, dict) else None
        items = [item for item in transcripts or [] if isinstance(item, dict)]
        return Page(items=items, next_token=offset + len(items))

    def _graphql(self, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        payload = self._request_json(
            method="POST",
            url=self._settings.graphql_url,
            json_body={"query": query, "variables": variables},
        )
        if not isinstance(payload, dict):
            raise ConnectorRequestError(f"{self.source}: unexpected GraphQL response shape.", body=payload)

        errors = payload.get("errors")
        if errors:
            first = errors[0] if isinstance(errors, list) and errors and isinstance(errors[0], dict) else {}
            extensions = first.get("extensions") if isinstance(first.get("extensions"), dict) else {}
            code = extensions.get("code")
            status = extensions.get("status")
            raise ConnectorRequestError(
                f"{self.source}: GraphQL error: {first.get('message') or 'unknown GraphQL error'}",
                status_code=status if isinstance(status, int) else None,
                code=code if isinstance(code, str) else None,
                body=payload,
            )
        data = payload.get("data")
        return data if isinstance(data, dict) else {}
