"""
tests/test_action_trigger.py

Pytest unit tests for the guarded CRM side effects.

Coverage
--------
- Exactly-once: a stored reference short-circuits before any CRM call
- Eligibility: Draft or stateless invoices, unlinked meeting notes
- Mapping skips: no mapping and ambiguous mapping
- CRM failures leave the record eligible for the next run
- Payload builders for deals and notes
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal

from app.connectors.base import ConnectorRequestError
from app.sync.actions import (
    SKIP_ALREADY_PERFORMED,
    SKIP_AMBIGUOUS_MAPPING,
    SKIP_NO_MAPPING,
    ActionStatus,
    InvoiceDealTrigger,
    MeetingNoteTrigger,
)
from app.sync.errors import ErrorCategory
from app.sync.formatting import build_deal_properties, format_duration, format_meeting_note
from db.models import CompanyMapping, CrmCompany, HarvestCompany, HarvestInvoice, MeetingNote


def _seed_invoice(db, *, state="open", mapped=True, crm_deal_id=None):
    harvest = HarvestCompany(harvest_id="55", name="Acme")
    crm = CrmCompany(company_id="hs-1", name="Acme")
    db.add_all([harvest, crm])
    db.commit()
    if mapped:
        db.add(CompanyMapping(crm_company_id=crm.id, harvest_company_id=harvest.id))
    invoice = HarvestInvoice(
        harvest_id="901",
        harvest_client_id="55",
        client_name="Acme",
        number="INV-7",
        state=state,
        amount=Decimal("1200.00"),
        due_date=date(2024, 2, 1),
        harvest_company_id=harvest.id,
        crm_deal_id=crm_deal_id,
    )
    db.add(invoice)
    db.commit()
    return invoice, crm


# ---------------------------------------------------------------------------
# Invoice -> deal
# ---------------------------------------------------------------------------


class TestInvoiceDealTrigger:
    def test_creates_deal_and_stores_reference(self, db, hubspot, hubspot_settings) -> None:
        invoice, crm = _seed_invoice(db)

        outcome = InvoiceDealTrigger(db, hubspot, settings=hubspot_settings).perform(invoice.id)

        assert outcome.status is ActionStatus.PERFORMED
        assert outcome.reference == "deal-1"
        assert hubspot.deals[0]["company_id"] == "hs-1"
        db.refresh(invoice)
        assert invoice.crm_deal_id == "deal-1"
        assert invoice.deal_synced_at is not None
        assert invoice.deal_paid_synced is False

    def test_second_perform_makes_no_crm_call(self, db, hubspot, hubspot_settings) -> None:
        invoice, _ = _seed_invoice(db)
        trigger = InvoiceDealTrigger(db, hubspot, settings=hubspot_settings)

        trigger.perform(invoice.id)
        second = trigger.perform(invoice.id)

        assert second.status is ActionStatus.SKIPPED
        assert second.reason == SKIP_ALREADY_PERFORMED
        assert second.reference == "deal-1"
        assert len(hubspot.deals) == 1

    def test_existing_reference_short_circuits(self, db, hubspot, hubspot_settings) -> None:
        invoice, _ = _seed_invoice(db, crm_deal_id="deal-legacy")

        outcome = InvoiceDealTrigger(db, hubspot, settings=hubspot_settings).perform(invoice.id)

        assert outcome.status is ActionStatus.SKIPPED
        assert hubspot.deals == []

    def test_draft_is_not_eligible(self, db, hubspot, hubspot_settings) -> None:
        invoice, _ = _seed_invoice(db, state="draft")
        trigger = InvoiceDealTrigger(db, hubspot, settings=hubspot_settings)

        outcome = trigger.perform(invoice.id)

        assert trigger.is_eligible(invoice) is False
        assert outcome.status is ActionStatus.SKIPPED
        assert "Draft" in outcome.reason
        assert hubspot.deals == []

    def test_unmapped_client_is_skipped(self, db, hubspot, hubspot_settings) -> None:
        invoice, _ = _seed_invoice(db, mapped=False)

        outcome = InvoiceDealTrigger(db, hubspot, settings=hubspot_settings).perform(invoice.id)

        assert outcome.status is ActionStatus.SKIPPED
        assert outcome.reason == SKIP_NO_MAPPING
        assert outcome.error is None

    def test_ambiguous_mapping_is_skipped(self, db, hubspot, hubspot_settings) -> None:
        invoice, _ = _seed_invoice(db)
        other = CrmCompany(company_id="hs-2", name="Acme EU")
        db.add(other)
        db.commit()
        db.add(CompanyMapping(crm_company_id=other.id, harvest_company_id=invoice.harvest_company_id))
        db.commit()

        outcome = InvoiceDealTrigger(db, hubspot, settings=hubspot_settings).perform(invoice.id)

        assert outcome.reason == SKIP_AMBIGUOUS_MAPPING
        assert hubspot.deals == []

    def test_crm_failure_leaves_record_eligible(self, db, hubspot, hubspot_settings) -> None:
        invoice, _ = _seed_invoice(db)
        hubspot.fail_writes_with = ConnectorRequestError("HubSpot: HTTP 429: Too many requests", status_code=429)
        trigger = InvoiceDealTrigger(db, hubspot, settings=hubspot_settings)

        failed = trigger.perform(invoice.id)

        assert failed.status is ActionStatus.FAILED
        assert failed.error.category is ErrorCategory.RATE_LIMITED
        db.refresh(invoice)
        assert invoice.crm_deal_id is None
        assert trigger.is_eligible(invoice) is True

        hubspot.fail_writes_with = None
        assert trigger.perform(invoice.id).status is ActionStatus.PERFORMED

    def test_paid_invoice_marks_paid_synced(self, db, hubspot, hubspot_settings) -> None:
        invoice, _ = _seed_invoice(db, state="paid")

        InvoiceDealTrigger(db, hubspot, settings=hubspot_settings).perform(invoice.id)

        db.refresh(invoice)
        assert invoice.deal_paid_synced is True
        assert hubspot.deals[0]["properties"]["dealstage"] == hubspot_settings.deal_stage_paid

    def test_missing_record(self, db, hubspot, hubspot_settings) -> None:
        outcome = InvoiceDealTrigger(db, hubspot, settings=hubspot_settings).perform(404)
        assert outcome.status is ActionStatus.SKIPPED


# ---------------------------------------------------------------------------
# Meeting -> note
# ---------------------------------------------------------------------------


class TestMeetingNoteTrigger:
    def _note(self, db, *, linked=True):
        crm = CrmCompany(company_id="hs-9", name="Acme")
        db.add(crm)
        db.commit()
        note = MeetingNote(
            meeting_id="ff-1",
            title="ACME weekly",
            meeting_date=datetime(2024, 3, 1, 15, 0, tzinfo=timezone.utc),
            duration_minutes=45,
            participants=["a@x.com"],
            crm_company_id=crm.id if linked else None,
        )
        db.add(note)
        db.commit()
        return note

    def test_posts_note_once(self, db, hubspot) -> None:
        note = self._note(db)
        trigger = MeetingNoteTrigger(db, hubspot)

        first = trigger.perform(note.id)
        second = trigger.perform(note.id)

        assert first.status is ActionStatus.PERFORMED
        assert second.status is ActionStatus.SKIPPED
        assert len(hubspot.notes) == 1
        assert hubspot.notes[0]["company_id"] == "hs-9"
        db.refresh(note)
        assert note.crm_note_id == "note-1"
        assert note.synced_to_crm_at is not None

    def test_unlinked_note_is_not_eligible(self, db, hubspot) -> None:
        note = self._note(db, linked=False)

        outcome = MeetingNoteTrigger(db, hubspot).perform(note.id)

        assert outcome.status is ActionStatus.SKIPPED
        assert hubspot.notes == []


# ---------------------------------------------------------------------------
# Payload builders
# ---------------------------------------------------------------------------


class TestFormatting:
    def test_deal_properties(self, hubspot_settings) -> None:
        invoice = HarvestInvoice(
            harvest_id="901",
            client_name="Acme",
            number="INV-7",
            state="open",
            amount=Decimal("1200.00"),
            currency="USD",
            due_date=date(2024, 2, 1),
        )

        properties = build_deal_properties(invoice, hubspot_settings)

        assert properties["dealname"] == "Acme - Invoice #INV-7"
        assert properties["dealstage"] == hubspot_settings.deal_stage_open
        assert properties["amount"] == "1200.00"
        assert properties["deal_currency_code"] == "USD"
        assert properties["closedate"].startswith("2024-02-01")

    def test_meeting_note_escapes_html(self) -> None:
        note = MeetingNote(meeting_id="m", title="<b>Q&A</b>", duration_minutes=75)
        body = format_meeting_note(note)
        assert "&lt;b&gt;Q&amp;A&lt;/b&gt;" in body
        assert "1h 15m" in body

    def test_format_duration(self) -> None:
        assert format_duration(45) == "45m"
        assert format_duration(120) == "2h 0m"
