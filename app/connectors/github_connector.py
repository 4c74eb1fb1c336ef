"""
app/connectors/github_connector.py

GitHub REST connector for repositories and releases.

Repository listing pages with `page` / `per_page` until a short page.
"""

from __future__ import annotations

from typing import Any

import requests

from app.config import ExternalHTTPSettings, GitHubSettings
from app.connectors.base import BaseConnector
from app.sync.pagination import Page


class GitHubConnector(BaseConnector):
    def __init__(
        self,
        *,
        settings: GitHubSettings,
        http_settings: ExternalHTTPSettings,
        session: requests.Session | None = None,
    ) -> None:
        super().__init__(source="github", http_settings=http_settings, session=session)
        self._settings = settings
        self.page_size = settings.page_size
        self.release_limit = settings.release_limit

    def missing_credentials(self) -> list[str]:
        return self._settings.missing_credentials()

    def _auth_headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._settings.token or ''}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    def _url(self, path: str) -> str:
        return f"{self._settings.base_url.rstrip('/')}{path}"

    def fetch_repositories_page(self, page: int | None, per_page: int) -> Page[dict[str, Any]]:
        page = page or 1
        if self._settings.org:
            url = self._url(f"/orgs/{self._settings.org}/repos")
            params: dict[str, Any] = {"type": "all"}
        else:
            url = self._url("/user/repos")
            params = {"affiliation": "owner,collaborator,organization_member"}
        params.update({"per_page": per_page, "page": page, "sort": "updated"})

        payload = self._request_json(method="GET", url=url, params=params)
        items = payload if isinstance(payload, list) else []
        return Page(items=[item for item in items if isinstance(item, dict)], next_token=page + 1)

    def list_releases(self, owner: str, repo: str, *, limit: int | None = None) -> list[dict[str, Any]]:
        payload = self._request_json(
            method="GET",
            url=self._url(f"/repos/{owner}/{repo}/releases"),
            params={"per_page": limit or self.release_limit},
        )
        return [item for item in payload if isinstance(item, dict)] if isinstance(payload, list) else []
