"""
Model package exports.

Import all SQLAlchemy models here so metadata registration and Alembic
autogeneration work without extra imports.
"""

from db.models.company_mapping import CompanyMapping, RepositoryMapping
from db.models.crm_company import CrmCompany
from db.models.github_repository import GitHubRepository
from db.models.harvest_company import HarvestCompany
from db.models.harvest_invoice import HarvestInvoice
from db.models.meeting_note import MeetingNote
from db.models.slack_channel import SlackChannel
from db.models.sync_run import (
    SyncDetailStatus,
    SyncRunLog,
    SyncRunLogDetail,
    SyncRunStatus,
    SyncTrigger,
)

__all__ = [
    "CompanyMapping",
    "CrmCompany",
    "GitHubRepository",
    "HarvestCompany",
    "HarvestInvoice",
    "MeetingNote",
    "RepositoryMapping",
    "SlackChannel",
    "SyncDetailStatus",
    "SyncRunLog",
    "SyncRunLogDetail",
    "SyncRunStatus",
    "SyncTrigger",
]
