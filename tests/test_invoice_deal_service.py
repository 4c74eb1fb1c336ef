"""
tests/test_invoice_deal_service.py

Pytest tests for refreshing CRM deals of invoices that already have one.
"""

from __future__ import annotations

from decimal import Decimal

from app.connectors.base import ConnectorRequestError
from app.domain.sync import SyncResultStatus
from app.services.invoice_deal_service import InvoiceDealService
from db.models import HarvestInvoice, SyncDetailStatus, SyncRunLog
from db.repositories.sync_run_repository import SyncRunRepository
from tests.conftest import FakeConnector


def _invoice(db, harvest_id: str, *, state: str | None, deal: str | None, paid_synced: bool = False) -> HarvestInvoice:
    invoice = HarvestInvoice(
        harvest_id=harvest_id,
        client_name="Acme",
        number=f"INV-{harvest_id}",
        state=state,
        amount=Decimal("300.00"),
        crm_deal_id=deal,
        deal_paid_synced=paid_synced,
    )
    db.add(invoice)
    db.commit()
    return invoice


def _service(hubspot, sync_settings, hubspot_settings) -> InvoiceDealService:
    return InvoiceDealService(hubspot=hubspot, settings=sync_settings, hubspot_settings=hubspot_settings)


# ---------------------------------------------------------------------------
# Selection and refresh
# ---------------------------------------------------------------------------


class TestInvoiceDealRefresh:
    def test_only_invoices_with_deals_are_refreshed(self, db, hubspot, sync_settings, hubspot_settings) -> None:
        with_deal = _invoice(db, "1", state="open", deal="deal-1")
        _invoice(db, "2", state="open", deal=None)
        _invoice(db, "3", state="draft", deal="deal-3")
        _invoice(db, "4", state=None, deal="deal-4")

        result = _service(hubspot, sync_settings, hubspot_settings).sync_invoice_deals(db)

        assert result.status == SyncResultStatus.COMPLETED
        assert result.mappings_processed == 1
        assert result.actions_performed == 1
        assert [deal_id for deal_id, _ in hubspot.deal_updates] == ["deal-1"]
        db.refresh(with_deal)
        assert with_deal.deal_synced_at is not None
        assert with_deal.deal_paid_synced is False

    def test_paid_invoice_is_marked_then_skipped(self, db, hubspot, sync_settings, hubspot_settings) -> None:
        invoice = _invoice(db, "1", state="paid", deal="deal-1")
        service = _service(hubspot, sync_settings, hubspot_settings)

        first = service.sync_invoice_deals(db)
        second = service.sync_invoice_deals(db)

        assert first.actions_performed == 1
        assert hubspot.deal_updates[0][1]["dealstage"] == hubspot_settings.deal_stage_paid
        db.refresh(invoice)
        assert invoice.deal_paid_synced is True
        assert second.actions_performed == 0
        assert second.skipped == 1
        assert second.mapping_results[0].detail == "deal already marked paid"
        assert len(hubspot.deal_updates) == 1

    def test_include_paid_refreshes_again(self, db, hubspot, sync_settings, hubspot_settings) -> None:
        _invoice(db, "1", state="paid", deal="deal-1", paid_synced=True)

        result = _service(hubspot, sync_settings, hubspot_settings).sync_invoice_deals(
            db, skip_paid_and_deal_paid=False
        )

        assert result.actions_performed == 1

    def test_update_failure_is_recorded(self, db, hubspot, sync_settings, hubspot_settings) -> None:
        invoice = _invoice(db, "1", state="open", deal="deal-1")
        hubspot.fail_writes_with = ConnectorRequestError("HubSpot: HTTP 404: deal gone", status_code=404)

        result = _service(hubspot, sync_settings, hubspot_settings).sync_invoice_deals(db)

        assert result.status == SyncResultStatus.COMPLETED
        assert result.errors == ("Error updating deal deal-1 for invoice 1: [not_found] HubSpot: HTTP 404: deal gone",)
        details = SyncRunRepository(db).list_details(result.run_log_id)
        assert details[0].subject_id == invoice.id
        assert details[0].status == SyncDetailStatus.FAILED
        run = db.get(SyncRunLog, result.run_log_id)
        assert run.failed == 1

    def test_missing_credentials(self, db, sync_settings, hubspot_settings) -> None:
        hubspot = FakeConnector("HubSpot", missing=["HUBSPOT_ACCESS_TOKEN"])

        result = _service(hubspot, sync_settings, hubspot_settings).sync_invoice_deals(db)

        assert result.status == SyncResultStatus.FAILED
        assert result.run_log_id is None
        assert db.query(SyncRunLog).count() == 0
