"""
app/config.py

Application-level configuration helpers.

Every settings object is a frozen dataclass built from environment variables
(plus `.env` / `.env.local`) by a cached getter. Connector settings expose
`missing_credentials()` so sync entry points can fail fast before opening a
run log.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from db.config import load_env_files


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    """
    Ensure project `.env` files are loaded once before reading app settings.
    """

    load_env_files()


def _get_bool_env(name: str, default: bool) -> bool:
    """
    Read a boolean from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int_env(name: str, default: int) -> int:
    """
    Read an integer from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return int(raw_value)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    """
    Read a float from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return float(raw_value)
    except ValueError:
        return default


def _get_str_env(name: str, default: str) -> str:
    """
    Read a string from environment variables with fallback.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return default
    stripped = value.strip()
    return stripped if stripped else default


def _get_optional_str_env(name: str) -> str | None:
    """
    Read an optional string value from environment variables.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return None
    stripped = value.strip()
    return stripped if stripped else None


@dataclass(frozen=True)
class ExternalHTTPSettings:
    """
    Shared HTTP behavior settings for external connectors.

    Retries cover transient 5xx responses and network errors only. A 429 is
    surfaced immediately so the next scheduled run picks the work up again.
    """

    timeout_seconds: float = 15.0
    max_retries: int = 3
    backoff_initial_seconds: float = 0.5
    backoff_multiplier: float = 2.0
    rate_limit_per_second: float = 5.0


@dataclass(frozen=True)
class HarvestSettings:
    account_id: str | None = None
    access_token: str | None = None
    base_url: str = "https://api.harvestapp.com/v2"
    page_size: int = 100
    user_agent: str = "ops-sync-console"

    def missing_credentials(self) -> list[str]:
        missing: list[str] = []
        if not self.account_id:
            missing.append("HARVEST_ACCOUNT_ID")
        if not self.access_token:
            missing.append("HARVEST_ACCESS_TOKEN")
        return missing


@dataclass(frozen=True)
class HubSpotSettings:
    access_token: str | None = None
    base_url: str = "https://api.hubapi.com"
    page_size: int = 100
    deal_pipeline: str = "default"
    deal_stage_open: str = "contractsent"
    deal_stage_paid: str = "closedwon"

    def missing_credentials(self) -> list[str]:
        return [] if self.access_token else ["HUBSPOT_ACCESS_TOKEN"]


@dataclass(frozen=True)
class GitHubSettings:
    token: str | None = None
    org: str | None = None
    base_url: str = "https://api.github.com"
    page_size: int = 100
    release_limit: int = 10

    def missing_credentials(self) -> list[str]:
        return [] if self.token else ["GITHUB_TOKEN"]


@dataclass(frozen=True)
class FirefliesSettings:
    api_key: str | None = None
    graphql_url: str = "https://api.fireflies.ai/graphql"
    page_size: int = 50
    max_items: int = 1000

    def missing_credentials(self) -> list[str]:
        return [] if self.api_key else ["FIREFLIES_API_KEY"]


@dataclass(frozen=True)
class SlackSettings:
    bot_token: str | None = None
    base_url: str = "https://slack.com/api"
    page_size: int = 200
    channel_types: str = "public_channel,private_channel"

    def missing_credentials(self) -> list[str]:
        return [] if self.bot_token else ["SLACK_BOT_TOKEN"]


@dataclass(frozen=True)
class SyncSettings:
    """
    Engine-wide limits and scheduler switches.
    """

    max_items: int = 5000
    max_stored_errors: int = 500
    error_display_limit: int = 10
    stale_run_minutes: int = 120
    scheduler_enabled: bool = True
    meeting_notes_auto_post: bool = False


@lru_cache(maxsize=1)
def get_external_http_settings() -> ExternalHTTPSettings:
    """
    Return shared connector HTTP settings from environment variables.
    """

    return ExternalHTTPSettings(
        timeout_seconds=max(1.0, _get_float_env("EXTERNAL_HTTP_TIMEOUT_SECONDS", 15.0)),
        max_retries=max(0, _get_int_env("EXTERNAL_HTTP_MAX_RETRIES", 3)),
        backoff_initial_seconds=max(0.1, _get_float_env("EXTERNAL_HTTP_BACKOFF_INITIAL_SECONDS", 0.5)),
        backoff_multiplier=max(1.0, _get_float_env("EXTERNAL_HTTP_BACKOFF_MULTIPLIER", 2.0)),
        rate_limit_per_second=max(0.1, _get_float_env("EXTERNAL_HTTP_RATE_LIMIT_PER_SECOND", 5.0)),
    )


@lru_cache(maxsize=1)
def get_harvest_settings() -> HarvestSettings:
    return HarvestSettings(
        account_id=_get_optional_str_env("HARVEST_ACCOUNT_ID"),
        access_token=_get_optional_str_env("HARVEST_ACCESS_TOKEN"),
        base_url=_get_str_env("HARVEST_BASE_URL", "https://api.harvestapp.com/v2"),
        page_size=min(100, max(1, _get_int_env("HARVEST_PAGE_SIZE", 100))),
        user_agent=_get_str_env("HARVEST_USER_AGENT", "ops-sync-console"),
    )


@lru_cache(maxsize=1)
def get_hubspot_settings() -> HubSpotSettings:
    return HubSpotSettings(
        access_token=_get_optional_str_env("HUBSPOT_ACCESS_TOKEN"),
        base_url=_get_str_env("HUBSPOT_BASE_URL", "https://api.hubapi.com"),
        page_size=min(100, max(1, _get_int_env("HUBSPOT_PAGE_SIZE", 100))),
        deal_pipeline=_get_str_env("HUBSPOT_DEAL_PIPELINE", "default"),
        deal_stage_open=_get_str_env("HUBSPOT_DEAL_STAGE_OPEN", "contractsent"),
        deal_stage_paid=_get_str_env("HUBSPOT_DEAL_STAGE_PAID", "closedwon"),
    )


@lru_cache(maxsize=1)
def get_github_settings() -> GitHubSettings:
    return GitHubSettings(
        token=_get_optional_str_env("GITHUB_TOKEN"),
        org=_get_optional_str_env("GITHUB_ORG"),
        base_url=_get_str_env("GITHUB_BASE_URL", "https://api.github.com"),
        page_size=min(100, max(1, _get_int_env("GITHUB_PAGE_SIZE", 100))),
        release_limit=max(1, _get_int_env("GITHUB_RELEASE_LIMIT", 10)),
    )


@lru_cache(maxsize=1)
def get_fireflies_settings() -> FirefliesSettings:
    return FirefliesSettings(
        api_key=_get_optional_str_env("FIREFLIES_API_KEY"),
        graphql_url=_get_str_env("FIREFLIES_GRAPHQL_URL", "https://api.fireflies.ai/graphql"),
        page_size=min(50, max(1, _get_int_env("FIREFLIES_PAGE_SIZE", 50))),
        max_items=max(1, _get_int_env("FIREFLIES_MAX_ITEMS", 1000)),
    )


@lru_cache(maxsize=1)
def get_slack_settings() -> SlackSettings:
    return SlackSettings(
        bot_token=_get_optional_str_env("SLACK_BOT_TOKEN"),
        base_url=_get_str_env("SLACK_BASE_URL", "https://slack.com/api"),
        page_size=min(1000, max(1, _get_int_env("SLACK_PAGE_SIZE", 200))),
        channel_types=_get_str_env("SLACK_CHANNEL_TYPES", "public_channel,private_channel"),
    )


@lru_cache(maxsize=1)
def get_sync_settings() -> SyncSettings:
    """
    Return engine-wide sync settings from environment variables.
    """

    return SyncSettings(
        max_items=max(1, _get_int_env("SYNC_MAX_ITEMS", 5000)),
        max_stored_errors=max(1, _get_int_env("SYNC_MAX_STORED_ERRORS", 500)),
        error_display_limit=max(1, _get_int_env("SYNC_ERROR_DISPLAY_LIMIT", 10)),
        stale_run_minutes=max(1, _get_int_env("SYNC_STALE_RUN_MINUTES", 120)),
        scheduler_enabled=_get_bool_env("SCHEDULER_ENABLED", True),
        meeting_notes_auto_post=_get_bool_env("MEETING_NOTES_AUTO_POST", False),
    )
