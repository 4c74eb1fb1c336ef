"""
app/connectors/clients.py

Per-invocation construction of the external API clients.
"""

from __future__ import annotations

from dataclasses import dataclass

import requests

from app.config import (
    get_external_http_settings,
    get_fireflies_settings,
    get_github_settings,
    get_harvest_settings,
    get_hubspot_settings,
    get_slack_settings,
)
from app.connectors.fireflies_connector import FirefliesConnector
from app.connectors.github_connector import GitHubConnector
from app.connectors.harvest_connector import HarvestConnector
from app.connectors.hubspot_connector import HubSpotConnector
from app.connectors.slack_connector import SlackConnector


@dataclass(frozen=True)
class SyncClients:
    """
    The set of external clients one sync invocation talks to.
    """

    harvest: HarvestConnector
    hubspot: HubSpotConnector
    github: GitHubConnector
    fireflies: FirefliesConnector
    slack: SlackConnector


def build_sync_clients(session: requests.Session | None = None) -> SyncClients:
    """
    Build fresh clients from current settings. One HTTP session is shared by
    the clients of a single invocation only.
    """

    http_settings = get_external_http_settings()
    http_session = session or requests.Session()
    return SyncClients(
        harvest=HarvestConnector(settings=get_harvest_settings(), http_settings=http_settings, session=http_session),
        hubspot=HubSpotConnector(settings=get_hubspot_settings(), http_settings=http_settings, session=http_session),
        github=GitHubConnector(settings=get_github_settings(), http_settings=http_settings, session=http_session),
        fireflies=FirefliesConnector(
            settings=get_fireflies_settings(),
            http_settings=http_settings,
            session=http_session,
        ),
        slack=SlackConnector(settings=get_slack_settings(), http_settings=http_settings, session=http_session),
    )
