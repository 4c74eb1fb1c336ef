"""
app/connectors/hubspot_connector.py

HubSpot CRM v3 connector: company listing plus the write calls used by the
action triggers (deal create/update, company notes).
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import requests

from app.config import ExternalHTTPSettings, HubSpotSettings
from app.connectors.base import BaseConnector, ConnectorRequestError
from app.sync.pagination import Page

COMPANY_PROPERTIES = ("name", "domain", "hubspot_owner_id")

# HubSpot-defined association type ids.
DEAL_TO_COMPANY_ASSOCIATION_TYPE_ID = 5
NOTE_TO_COMPANY_ASSOCIATION_TYPE_ID = 190


class HubSpotConnector(BaseConnector):
    def __init__(
        self,
        *,
        settings: HubSpotSettings,
        http_settings: ExternalHTTPSettings,
        session: requests.Session | None = None,
    ) -> None:
        super().__init__(source="hubspot", http_settings=http_settings, session=session)
        self._settings = settings
        self.page_size = settings.page_size

    def missing_credentials(self) -> list[str]:
        return self._settings.missing_credentials()

    def _auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._settings.access_token or ''}"}

    def _url(self, path: str) -> str:
        return f"{self._settings.base_url.rstrip('/')}{path}"

    def fetch_companies_page(self, after: str | None, limit: int) -> Page[dict[str, Any]]:
        params: dict[str, Any] = {"limit": limit, "properties": ",".join(COMPANY_PROPERTIES), "archived": "false"}
        if after:
            params["after"] = after
        payload = self._request_json(method="GET", url=self._url("/crm/v3/objects/companies"), params=params)
        results = payload.get("results") if isinstance(payload, dict) else None
        next_after = None
        if isinstance(payload, dict):
            next_after = ((payload.get("paging") or {}).get("next") or {}).get("after")
        return Page(
            items=[item for item in results or [] if isinstance(item, dict)],
            next_token=str(next_after) if next_after else None,
        )

    def create_deal(self, properties: dict[str, Any], *, company_id: str) -> str:
        payload = self._request_json(
            method="POST",
            url=self._url("/crm/v3/objects/deals"),
            json_body={
                "properties": properties,
                "associations": [_association(company_id, DEAL_TO_COMPANY_ASSOCIATION_TYPE_ID)],
            },
        )
        return self._object_id(payload, "deal")

    def update_deal(self, deal_id: str, properties: dict[str, Any]) -> None:
        self._request_json(
            method="PATCH",
            url=self._url(f"/crm/v3/objects/deals/{deal_id}"),
            json_body={"properties": properties},
        )

    def create_company_note(self, company_id: str, body: str, *, timestamp: datetime) -> str:
        moment = timestamp if timestamp.tzinfo else timestamp.replace(tzinfo=timezone.utc)
        payload = self._request_json(
            method="POST",
            url=self._url("/crm/v3/objects/notes"),
            json_body={
                "properties": {
                    "hs_timestamp": str(int(moment.timestamp() * 1000)),
                    "hs_note_body": body,
                },
                "associations": [_association(company_id, NOTE_TO_COMPANY_ASSOCIATION_TYPE_ID)],
            },
        )
        return self._object_id(payload, "note")

    def _object_id(self, payload: Any, object_type: str) -> str:
        object_id = payload.get("id") if isinstance(payload, dict) else None
        if not object_id:
            raise ConnectorRequestError(f"{self.source}: {object_type} response did not include an id.", body=payload)
        return str(object_id)


def _association(company_id: str, type_id: int) -> dict[str, Any]:
    return {
        "to": {"id": str(company_id)},
        "types": [{"associationCategory": "HUBSPOT_DEFINED", "associationTypeId": type_id}],
    }
