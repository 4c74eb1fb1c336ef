"""
app/connectors/slack_connector.py

Slack Web API connector for channel listing.

`conversations.list` pages with an opaque `next_cursor` and may return fewer
channels than requested while more remain. Slack reports failures as
HTTP 200 with `ok: false` and an `error` code.
"""

from __future__ import annotations

from typing import Any

import requests

from app.config import ExternalHTTPSettings, SlackSettings
from app.connectors.base import BaseConnector, ConnectorRequestError
from app.sync.pagination import Page


class SlackConnector(BaseConnector):
    def __init__(
        self,
        *,
        settings: SlackSettings,
        http_settings: ExternalHTTPSettings,
        session: requests.Session | None = None,
    ) -> None:
        super().__init__(source="slack", http_settings=http_settings, session=session)
        self._settings = settings
        self.page_size = settings.page_size

    def missing_credentials(self) -> list[str]:
        return self._settings.missing_credentials()

    def _auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._settings.bot_token or ''}"}

    def fetch_channels_page(self, cursor: str | None, limit: int) -> Page[dict[str, Any]]:
        params: dict[str, Any] = {
            "types": self._settings.channel_types,
            "exclude_archived": "false",
            "limit": limit,
        }
        if cursor:
            params["cursor"] = cursor
        payload = self._call("conversations.list", params)
        channels = payload.get("channels")
        next_cursor = (payload.get("response_metadata") or {}).get("next_cursor")
        return Page(
            items=[item for item in channels or [] if isinstance(item, dict)],
            next_token=next_cursor or None,
        )

    def _call(self, method: str, params: dict[str, Any]) -> dict[str, Any]:
        payload = self._request_json(
            method="GET",
            url=f"{self._settings.base_url.rstrip('/')}/{method}",
            params=params,
        )
        if not isinstance(payload, dict):
            raise ConnectorRequestError(f"{self.source}: unexpected response from {method}.", body=payload)
        if not payload.get("ok", False):
            code = payload.get("error") if isinstance(payload.get("error"), str) else None
            raise ConnectorRequestError(
                f"{self.source}: {method} failed: {code or 'unknown error'}",
                code=code,
                body=payload,
            )
        return payload
