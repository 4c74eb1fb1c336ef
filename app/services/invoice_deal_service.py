"""
app/services/invoice_deal_service.py

Refresh CRM deals that were already created for invoices, so stage, amount
and close date follow the invoice after it is paid or edited.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.config import HubSpotSettings, SyncSettings, get_hubspot_settings, get_sync_settings
from app.connectors.clients import build_sync_clients
from app.domain.sync import MISSING_CREDENTIALS, MappingOutcome, MappingSyncResult, SyncKind, SyncResultStatus
from app.sync.errors import classify_error, format_error
from app.sync.formatting import build_deal_properties
from app.sync.run_tracker import RunTracker
from db.models.harvest_invoice import HarvestInvoice
from db.models.sync_run import SyncDetailStatus, SyncTrigger

logger = logging.getLogger(__name__)

SUBJECT_TYPE = "harvest_invoice"


class InvoiceDealService:
    def __init__(
        self,
        *,
        hubspot: Any,
        settings: SyncSettings | None = None,
        hubspot_settings: HubSpotSettings | None = None,
    ) -> None:
        self._hubspot = hubspot
        self._settings = settings or get_sync_settings()
        self._hubspot_settings = hubspot_settings or get_hubspot_settings()

    def sync_invoice_deals(
        self,
        db: Session,
        *,
        skip_paid_and_deal_paid: bool = True,
        trigger: str = SyncTrigger.MANUAL,
    ) -> MappingSyncResult:
        missing = self._hubspot.missing_credentials()
        if missing:
            message = f"Missing credentials: {', '.join(missing)}"
            logger.warning("Invoice deal refresh not started reason=%s", message)
            return MappingSyncResult(
                kind=SyncKind.INVOICE_DEALS,
                status=SyncResultStatus.FAILED,
                errors=(message,),
                fatal_error=message,
                fatal_category=MISSING_CREDENTIALS,
            )

        tracker = RunTracker(db, max_stored_errors=self._settings.max_stored_errors)
        run_id = tracker.open(SyncKind.INVOICE_DEALS, trigger)

        outcomes: list[MappingOutcome] = []
        errors: list[str] = []
        try:
            invoices = list(
                db.scalars(
                    select(HarvestInvoice)
                    .where(
                        HarvestInvoice.crm_deal_id.is_not(None),
                        HarvestInvoice.state.is_not(None),
                        func.lower(HarvestInvoice.state) != "draft",
                    )
                    .order_by(HarvestInvoice.id.asc())
                ).all()
            )
            tracker.record_found(run_id, len(invoices))

            for invoice in invoices:
                outcome = self._refresh(db, invoice, skip_paid_and_deal_paid=skip_paid_and_deal_paid)
                outcomes.append(outcome)
                if outcome.error_message:
                    errors.append(outcome.error_message)
                tracker.record_detail(
                    run_id,
                    subject_type=SUBJECT_TYPE,
                    subject_id=invoice.id,
                    status=outcome.status,
                    actions_performed=outcome.actions_performed,
                    error_message=outcome.error_message,
                )
        except Exception as exc:  # noqa: BLE001
            db.rollback()
            logger.exception("Invoice deal refresh crashed run_log_id=%s", run_id)
            classified = classify_error(exc)
            message = format_error("invoice_deals sync failed", classified)
            tracker.fail(run_id, message)
            return MappingSyncResult(
                kind=SyncKind.INVOICE_DEALS,
                status=SyncResultStatus.FAILED,
                run_log_id=run_id,
                mappings_processed=len(outcomes),
                actions_performed=sum(outcome.actions_performed for outcome in outcomes),
                errors=tuple([*errors, message]),
                mapping_results=tuple(outcomes),
                fatal_error=message,
                fatal_category=classified.category.value,
            )

        updated = sum(outcome.actions_performed for outcome in outcomes)
        skipped = sum(1 for outcome in outcomes if outcome.status == SyncDetailStatus.SKIPPED)
        tracker.finalize(
            run_id,
            created=0,
            updated=updated,
            errors=errors,
            skipped=skipped,
            actions_performed=updated,
        )
        logger.info(
            "Invoice deal refresh finished run_log_id=%s invoices=%s updated=%s skipped=%s errors=%s",
            run_id,
            len(outcomes),
            updated,
            skipped,
            len(errors),
        )
        return MappingSyncResult(
            kind=SyncKind.INVOICE_DEALS,
            status=SyncResultStatus.COMPLETED,
            run_log_id=run_id,
            mappings_processed=len(outcomes),
            actions_performed=updated,
            skipped=skipped,
            errors=tuple(errors),
            mapping_results=tuple(outcomes),
        )

    def _refresh(self, db: Session, invoice: HarvestInvoice, *, skip_paid_and_deal_paid: bool) -> MappingOutcome:
        is_paid = (invoice.state or "").lower() == "paid"
        if skip_paid_and_deal_paid and is_paid and invoice.deal_paid_synced:
            return MappingOutcome(
                subject_type=SUBJECT_TYPE,
                subject_id=invoice.id,
                status=SyncDetailStatus.SKIPPED,
                detail="deal already marked paid",
            )

        properties = build_deal_properties(invoice, self._hubspot_settings)
        try:
            self._hubspot.update_deal(invoice.crm_deal_id, properties)
        except Exception as exc:  # noqa: BLE001
            message = format_error(f"Error updating deal {invoice.crm_deal_id} for invoice {invoice.harvest_id}", exc)
            logger.warning("Deal update failed invoice_id=%s error=%s", invoice.id, message)
            return MappingOutcome(
                subject_type=SUBJECT_TYPE,
                subject_id=invoice.id,
                status=SyncDetailStatus.FAILED,
                error_message=message,
            )

        invoice.deal_synced_at = datetime.now(timezone.utc)
        invoice.deal_paid_synced = is_paid
        db.commit()
        return MappingOutcome(
            subject_type=SUBJECT_TYPE,
            subject_id=invoice.id,
            status=SyncDetailStatus.SUCCESS,
            actions_performed=1,
        )


def get_invoice_deal_service() -> InvoiceDealService:
    return InvoiceDealService(hubspot=build_sync_clients().hubspot)
