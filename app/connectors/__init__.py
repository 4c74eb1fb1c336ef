"""
app/connectors package marker.
"""

from app.connectors.base import BaseConnector, ConnectorRequestError
from app.connectors.clients import SyncClients, build_sync_clients
from app.connectors.fireflies_connector import FirefliesConnector
from app.connectors.github_connector import GitHubConnector
from app.connectors.harvest_connector import HarvestConnector
from app.connectors.hubspot_connector import HubSpotConnector
from app.connectors.slack_connector import SlackConnector

__all__ = [
    "BaseConnector",
    "ConnectorRequestError",
    "FirefliesConnector",
    "GitHubConnector",
    "HarvestConnector",
    "HubSpotConnector",
    "SlackConnector",
    "SyncClients",
    "build_sync_clients",
]
