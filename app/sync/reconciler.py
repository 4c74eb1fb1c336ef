"""
app/sync/reconciler.py

Natural-key reconciliation of normalized records into local tables.

Lookup is by natural key only. Each call is its own transaction. Fields
declared protected for a record kind (action references, operator links)
are never written here, whatever the normalized record carries.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.sync.normalizers import NormalizedRecord
from db.base import Base
from db.models.crm_company import CrmCompany
from db.models.github_repository import GitHubRepository
from db.models.harvest_company import HarvestCompany
from db.models.harvest_invoice import HarvestInvoice
from db.models.meeting_note import MeetingNote
from db.models.slack_channel import SlackChannel

logger = logging.getLogger(__name__)

SKIP_REASON_DUPLICATE = "duplicate"


class ReconcileStatus(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class ReconcileOutcome:
    status: ReconcileStatus
    natural_key: str
    record: Any | None = None
    reason: str | None = None


@dataclass(frozen=True)
class RecordKind:
    """
    One mirrored entity kind: its model, natural-key column and the
    locally-owned columns reconciliation must leave alone.
    """

    name: str
    model: type[Base]
    natural_key_attr: str
    protected_fields: frozenset[str] = frozenset()

    def writable(self, fields: dict[str, Any]) -> dict[str, Any]:
        excluded = self.protected_fields | {"id", self.natural_key_attr}
        return {name: value for name, value in fields.items() if name not in excluded}


@dataclass
class ReconcileTally:
    created: int = 0
    updated: int = 0
    skipped: int = 0

    def add(self, outcome: ReconcileOutcome) -> None:
        if outcome.status is ReconcileStatus.CREATED:
            self.created += 1
        elif outcome.status is ReconcileStatus.UPDATED:
            self.updated += 1
        else:
            self.skipped += 1


HARVEST_COMPANY_KIND = RecordKind(
    name="harvest_company",
    model=HarvestCompany,
    natural_key_attr="harvest_id",
)
HARVEST_INVOICE_KIND = RecordKind(
    name="harvest_invoice",
    model=HarvestInvoice,
    natural_key_attr="harvest_id",
    protected_fields=frozenset({"crm_deal_id", "deal_paid_synced", "deal_synced_at"}),
)
CRM_COMPANY_KIND = RecordKind(
    name="crm_company",
    model=CrmCompany,
    natural_key_attr="company_id",
    protected_fields=frozenset({"abbreviation"}),
)
GITHUB_REPOSITORY_KIND = RecordKind(
    name="github_repository",
    model=GitHubRepository,
    natural_key_attr="github_id",
)
MEETING_NOTE_KIND = RecordKind(
    name="meeting_note",
    model=MeetingNote,
    natural_key_attr="meeting_id",
    protected_fields=frozenset({"crm_company_id", "crm_note_id", "synced_to_crm_at"}),
)
SLACK_CHANNEL_KIND = RecordKind(
    name="slack_channel",
    model=SlackChannel,
    natural_key_attr="channel_id",
    protected_fields=frozenset({"is_client"}),
)


class Reconciler:
    def __init__(self, db: Session, kind: RecordKind) -> None:
        self._db = db
        self.kind = kind
        self.tally = ReconcileTally()

    def find(self, natural_key: str) -> Any | None:
        model = self.kind.model
        column = getattr(model, self.kind.natural_key_attr)
        return self._db.scalars(select(model).where(column == natural_key)).first()

    def reconcile(self, record: NormalizedRecord) -> ReconcileOutcome:
        """
        Create or update one record by natural key and commit.

        A unique-constraint violation (another writer inserted the same key
        first) is rolled back and reported as skipped, never raised.
        """

        values = self.kind.writable(record.fields)
        try:
            existing = self.find(record.natural_key)
            if existing is None:
                instance = self.kind.model(**{self.kind.natural_key_attr: record.natural_key}, **values)
                self._db.add(instance)
                status = ReconcileStatus.CREATED
            else:
                for name, value in values.items():
                    setattr(existing, name, value)
                instance = existing
                status = ReconcileStatus.UPDATED
            self._db.commit()
        except IntegrityError:
            self._db.rollback()
            logger.warning(
                "Reconcile skipped duplicate kind=%s natural_key=%s",
                self.kind.name,
                record.natural_key,
            )
            outcome = ReconcileOutcome(
                status=ReconcileStatus.SKIPPED,
                natural_key=record.natural_key,
                reason=SKIP_REASON_DUPLICATE,
            )
            self.tally.add(outcome)
            return outcome

        outcome = ReconcileOutcome(status=status, natural_key=record.natural_key, record=instance)
        self.tally.add(outcome)
        return outcome
