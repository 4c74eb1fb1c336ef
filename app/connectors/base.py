"""
app/connectors/base.py

Base connector abstraction and shared HTTP mechanics.

Connectors are constructed explicitly per sync invocation from settings and
passed into the services; nothing here is process-global.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import Any

import requests

from app.config import ExternalHTTPSettings

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = {500, 502, 503, 504}


class ConnectorRequestError(RuntimeError):
    """
    Raised when a connector request fails.

    Carries the HTTP status, the provider's error code (Slack `error`,
    GraphQL `extensions.code`, HubSpot `category`) and the decoded body so
    the error classifier can inspect them.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        code: str | None = None,
        body: Any = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.body = body


class BaseConnector(ABC):
    """
    Connector interface with retrying, rate-limited JSON requests.
    """

    source: str

    def __init__(
        self,
        *,
        source: str,
        http_settings: ExternalHTTPSettings,
        session: requests.Session | None = None,
    ) -> None:
        self.source = source
        self._session = session or requests.Session()
        self._timeout_seconds = http_settings.timeout_seconds
        self._max_retries = http_settings.max_retries
        self._backoff_initial_seconds = http_settings.backoff_initial_seconds
        self._backoff_multiplier = http_settings.backoff_multiplier
        self._min_request_interval_seconds = (
            1.0 / http_settings.rate_limit_per_second if http_settings.rate_limit_per_second > 0 else 0.0
        )
        self._last_request_monotonic: float = 0.0

    @abstractmethod
    def missing_credentials(self) -> list[str]:
        """
        Return the names of required settings that are not configured.
        """

    @abstractmethod
    def _auth_headers(self) -> dict[str, str]:
        """
        Return authentication headers for every request.
        """

    def _request_json(
        self,
        *,
        method: str,
        url: str,
        params: dict[str, Any] | None = None,
        json_body: Any = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        """
        Execute an HTTP request and return parsed JSON with retry support.
        """

        response = self._request(method=method, url=url, params=params, json_body=json_body, headers=headers)
        if response.status_code == 204 or not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            raise ConnectorRequestError(
                f"{self.source}: response was not valid JSON.",
                status_code=response.status_code,
            ) from exc

    def _request(
        self,
        *,
        method: str,
        url: str,
        params: dict[str, Any] | None = None,
        json_body: Any = None,
        headers: dict[str, str] | None = None,
    ) -> requests.Response:
        """
        Execute an HTTP request with rate limiting and exponential backoff.

        Only 5xx responses and network errors are retried. Everything else,
        429 included, is raised at once as `ConnectorRequestError`.
        """

        merged_headers = {"Accept": "application/json", **self._auth_headers(), **(headers or {})}
        last_error: Exception | None = None
        last_status: int | None = None
        for attempt in range(self._max_retries + 1):
            self._apply_rate_limit()
            try:
                response = self._session.request(
                    method=method,
                    url=url,
                    params=params,
                    json=json_body,
                    headers=merged_headers,
                    timeout=self._timeout_seconds,
                )
            except (requests.Timeout, requests.ConnectionError) as exc:
                last_error = exc
            else:
                if response.status_code < 400:
                    return response
                last_status = response.status_code
                if response.status_code not in RETRYABLE_STATUS_CODES:
                    raise self._error_from_response(response, url)
                last_error = requests.HTTPError(
                    f"Retryable HTTP status code: {response.status_code}",
                    response=response,
                )

            if attempt >= self._max_retries:
                break

            backoff_seconds = self._backoff_initial_seconds * (self._backoff_multiplier**attempt)
            logger.warning(
                "Connector request retry source=%s attempt=%s/%s wait_seconds=%.2f url=%s",
                self.source,
                attempt + 1,
                self._max_retries,
                backoff_seconds,
                url,
            )
            time.sleep(backoff_seconds)

        logger.error(
            "Connector request exhausted retries source=%s url=%s error=%s",
            self.source,
            url,
            last_error,
        )
        raise ConnectorRequestError(
            f"{self.source}: request failed after retries: {last_error}",
            status_code=last_status,
        ) from last_error

    def _error_from_response(self, response: requests.Response, url: str) -> ConnectorRequestError:
        body: Any
        try:
            body = response.json()
        except ValueError:
            body = response.text[:500] if response.text else None

        detail = None
        code = None
        if isinstance(body, dict):
            detail = body.get("message") or body.get("error_description") or body.get("error")
            raw_code = body.get("code") or body.get("category") or body.get("error")
            code = raw_code if isinstance(raw_code, str) else None
        elif isinstance(body, str):
            detail = body
        if response.status_code == 429 and not detail:
            detail = "Too many requests"

        logger.error(
            "Connector request failed source=%s status=%s url=%s detail=%s",
            self.source,
            response.status_code,
            url,
            detail,
        )
        return ConnectorRequestError(
            f"{self.source}: HTTP {response.status_code}: {detail or response.reason or 'request failed'}",
            status_code=response.status_code,
            code=code,
            body=body,
        )

    def _apply_rate_limit(self) -> None:
        """
        Enforce minimum interval between outbound requests.
        """

        if self._min_request_interval_seconds <= 0:
            return

        now = time.monotonic()
        elapsed = now - self._last_request_monotonic
        remaining = self._min_request_interval_seconds - elapsed
        if remaining > 0:
            time.sleep(remaining)
        self._last_request_monotonic = time.monotonic()
