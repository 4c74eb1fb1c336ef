"""
app/sync/actions.py

Guarded cross-system side effects performed after reconciliation.

Every trigger follows the same sequence for one local record:

1. reload the row and skip immediately if its action reference is set;
2. check the eligibility predicate;
3. resolve the CRM counterpart through the matcher (skip on no/ambiguous
   mapping);
4. call the CRM;
5. persist the returned reference with a conditional update that only
   matches while the reference is still NULL.

Failures are classified and reported. The record is left eligible so a
later run (or a fixed mapping) can complete it.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Protocol

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import HubSpotSettings
from app.sync.errors import ClassifiedError, classify_error
from app.sync.formatting import build_deal_properties, format_meeting_note
from app.sync.matcher import (
    HARVEST_TO_CRM_COMPANY,
    MEETING_NOTE_TO_CRM_COMPANY,
    CrossSystemMatcher,
    MatchResult,
    MatchStatus,
    Multiplicity,
)
from db.models.crm_company import CrmCompany
from db.models.harvest_invoice import HarvestInvoice
from db.models.meeting_note import MeetingNote

logger = logging.getLogger(__name__)

SKIP_ALREADY_PERFORMED = "already performed"
SKIP_NO_MAPPING = "no mapping"
SKIP_AMBIGUOUS_MAPPING = "ambiguous mapping"
SKIP_NOT_ELIGIBLE = "not eligible"
SKIP_RECORD_MISSING = "record not found"


class CrmClient(Protocol):
    def create_deal(self, properties: dict[str, Any], *, company_id: str) -> str: ...

    def update_deal(self, deal_id: str, properties: dict[str, Any]) -> None: ...

    def create_company_note(self, company_id: str, body: str, *, timestamp: datetime) -> str: ...


class ActionStatus(str, Enum):
    PERFORMED = "performed"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class ActionOutcome:
    status: ActionStatus
    record_id: int
    reference: str | None = None
    reason: str | None = None
    error: ClassifiedError | None = None

    @property
    def message(self) -> str | None:
        if self.error is not None:
            return self.error.describe()
        return self.reason


class ActionTrigger(ABC):
    """
    Base class for one kind of guarded side effect.
    """

    action_name: str
    model: type[Any]
    reference_attr: str

    def __init__(self, db: Session, crm: CrmClient, *, matcher: CrossSystemMatcher | None = None) -> None:
        self._db = db
        self._crm = crm
        self._matcher = matcher or CrossSystemMatcher(db)

    def is_eligible(self, record: Any) -> bool:
        return getattr(record, self.reference_attr) is None and self.ineligible_reason(record) is None

    @abstractmethod
    def ineligible_reason(self, record: Any) -> str | None:
        """Return why the record cannot be acted on, ignoring the reference guard."""

    @abstractmethod
    def resolve(self, record: Any) -> MatchResult:
        """Resolve the local CRM company id for the record."""

    @abstractmethod
    def call(self, record: Any, company: CrmCompany) -> str:
        """Perform the external side effect and return its reference."""

    def persisted_values(self, record: Any, reference: str) -> dict[str, Any]:
        return {self.reference_attr: reference}

    def perform(self, record_id: int) -> ActionOutcome:
        record = self._db.get(self.model, record_id, populate_existing=True)
        if record is None:
            return ActionOutcome(status=ActionStatus.SKIPPED, record_id=record_id, reason=SKIP_RECORD_MISSING)

        existing_reference = getattr(record, self.reference_attr)
        if existing_reference is not None:
            return ActionOutcome(
                status=ActionStatus.SKIPPED,
                record_id=record_id,
                reference=existing_reference,
                reason=SKIP_ALREADY_PERFORMED,
            )

        reason = self.ineligible_reason(record)
        if reason is not None:
            return ActionOutcome(
                status=ActionStatus.SKIPPED,
                record_id=record_id,
                reason=f"{SKIP_NOT_ELIGIBLE}: {reason}",
            )

        match = self.resolve(record)
        company = self._db.get(CrmCompany, match.counterpart_id) if match.found else None
        if company is None:
            skip_reason = SKIP_AMBIGUOUS_MAPPING if match.status is MatchStatus.AMBIGUOUS else SKIP_NO_MAPPING
            logger.info(
                "Action skipped action=%s record_id=%s reason=%s detail=%s",
                self.action_name,
                record_id,
                skip_reason,
                match.message,
            )
            return ActionOutcome(status=ActionStatus.SKIPPED, record_id=record_id, reason=skip_reason)

        try:
            reference = str(self.call(record, company))
        except Exception as exc:  # noqa: BLE001
            classified = classify_error(exc)
            logger.warning(
                "Action failed action=%s record_id=%s category=%s error=%s",
                self.action_name,
                record_id,
                classified.category.value,
                classified.message,
            )
            return ActionOutcome(status=ActionStatus.FAILED, record_id=record_id, error=classified)

        return self._persist(record, reference)

    def _persist(self, record: Any, reference: str) -> ActionOutcome:
        model = self.model
        reference_column = getattr(model, self.reference_attr)
        stmt = (
            update(model)
            .where(model.id == record.id, reference_column.is_(None))
            .values(**self.persisted_values(record, reference))
            .execution_options(synchronize_session=False)
        )
        try:
            result = self._db.execute(stmt)
            self._db.commit()
        except SQLAlchemyError as exc:
            self._db.rollback()
            logger.exception(
                "Action reference not saved action=%s record_id=%s reference=%s",
                self.action_name,
                record.id,
                reference,
            )
            classified = ClassifiedError(
                category=classify_error(exc).category,
                message=f"{self.action_name} succeeded with reference {reference} but it could not be saved",
            )
            return ActionOutcome(status=ActionStatus.FAILED, record_id=record.id, reference=reference, error=classified)

        self._db.refresh(record)
        if result.rowcount != 1:
            logger.error(
                "Action reference already set by a concurrent run action=%s record_id=%s orphan_reference=%s",
                self.action_name,
                record.id,
                reference,
            )
            return ActionOutcome(
                status=ActionStatus.SKIPPED,
                record_id=record.id,
                reference=getattr(record, self.reference_attr),
                reason=SKIP_ALREADY_PERFORMED,
            )

        logger.info(
            "Action performed action=%s record_id=%s reference=%s",
            self.action_name,
            record.id,
            reference,
        )
        return ActionOutcome(status=ActionStatus.PERFORMED, record_id=record.id, reference=reference)


class InvoiceDealTrigger(ActionTrigger):
    """Create one CRM deal per non-draft invoice whose client is mapped."""

    action_name = "create_deal"
    model = HarvestInvoice
    reference_attr = "crm_deal_id"

    def __init__(
        self,
        db: Session,
        crm: CrmClient,
        *,
        settings: HubSpotSettings,
        matcher: CrossSystemMatcher | None = None,
    ) -> None:
        super().__init__(db, crm, matcher=matcher)
        self._settings = settings

    def ineligible_reason(self, record: HarvestInvoice) -> str | None:
        if not record.state:
            return "invoice has no state"
        if record.state.lower() == "draft":
            return "invoice is in Draft state"
        return None

    def resolve(self, record: HarvestInvoice) -> MatchResult:
        return self._matcher.resolve_counterpart(
            record.harvest_company_id,
            HARVEST_TO_CRM_COMPANY,
            Multiplicity.SINGLE,
        )

    def call(self, record: HarvestInvoice, company: CrmCompany) -> str:
        properties = build_deal_properties(record, self._settings)
        return self._crm.create_deal(properties, company_id=company.company_id)

    def persisted_values(self, record: HarvestInvoice, reference: str) -> dict[str, Any]:
        return {
            "crm_deal_id": reference,
            "deal_synced_at": datetime.now(timezone.utc),
            "deal_paid_synced": (record.state or "").lower() == "paid",
        }


class MeetingNoteTrigger(ActionTrigger):
    """Post a meeting summary as a note on the linked CRM company."""

    action_name = "create_meeting_note"
    model = MeetingNote
    reference_attr = "crm_note_id"

    def ineligible_reason(self, record: MeetingNote) -> str | None:
        if record.crm_company_id is None:
            return "meeting note is not linked to a CRM company"
        return None

    def resolve(self, record: MeetingNote) -> MatchResult:
        return self._matcher.resolve_counterpart(
            record.id,
            MEETING_NOTE_TO_CRM_COMPANY,
            Multiplicity.SINGLE,
        )

    def call(self, record: MeetingNote, company: CrmCompany) -> str:
        timestamp = record.meeting_date or datetime.now(timezone.utc)
        return self._crm.create_company_note(company.company_id, format_meeting_note(record), timestamp=timestamp)

    def persisted_values(self, record: MeetingNote, reference: str) -> dict[str, Any]:
        return {
            "crm_note_id": reference,
            "synced_to_crm_at": datetime.now(timezone.utc),
        }
