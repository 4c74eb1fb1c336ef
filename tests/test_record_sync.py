"""
tests/test_record_sync.py

End-to-end tests of the record sync pipeline through SyncService, using
fake API clients and an in-memory database.

Coverage
--------
- Invoice sync: creation, deal action once, no-mapping skip
- An invoice moved to an unmirrored client loses its company link
- Re-running a sync updates in place and repeats no action
- First-page failure fails the run with nothing written
- Later-page failure keeps earlier items and completes with an error
- Normalization failures are item errors, not run failures
- Missing credentials never open a run log
- Cursor pagination for Slack and offset pagination for Fireflies
- Meeting note auto-post for linked notes
"""

from __future__ import annotations

import pytest
from sqlalchemy import func, select

from app.connectors.base import ConnectorRequestError
from app.domain.sync import MISSING_CREDENTIALS, SyncKind, SyncResultStatus
from app.services.sync_service import SyncService
from app.sync.actions import SKIP_NO_MAPPING, ActionStatus
from app.sync.pagination import Page
from db.models import (
    CompanyMapping,
    CrmCompany,
    HarvestCompany,
    HarvestInvoice,
    MeetingNote,
    SlackChannel,
    SyncRunLog,
    SyncRunLogDetail,
    SyncRunStatus,
)
from tests.conftest import FakeConnector, numbered_pages


def _service(harvest, hubspot, github, fireflies, slack, sync_settings, hubspot_settings) -> SyncService:
    return SyncService(
        harvest=harvest,
        hubspot=hubspot,
        github=github,
        fireflies=fireflies,
        slack=slack,
        settings=sync_settings,
        hubspot_settings=hubspot_settings,
    )


def _invoice(harvest_id: int, client_id: int, *, state: str = "open") -> dict:
    return {
        "id": harvest_id,
        "client": {"id": client_id, "name": f"Client {client_id}"},
        "number": f"INV-{harvest_id}",
        "amount": "500.00",
        "state": state,
        "issue_date": "2024-01-01",
        "due_date": "2024-01-31",
    }


def _seed_mapped_client(db) -> None:
    mapped = HarvestCompany(harvest_id="10", name="Client 10")
    unmapped = HarvestCompany(harvest_id="20", name="Client 20")
    crm = CrmCompany(company_id="hs-10", name="Client 10")
    db.add_all([mapped, unmapped, crm])
    db.commit()
    db.add(CompanyMapping(crm_company_id=crm.id, harvest_company_id=mapped.id))
    db.commit()


# ---------------------------------------------------------------------------
# Invoices
# ---------------------------------------------------------------------------


class TestInvoiceSync:
    def test_two_invoices_one_mapped(
        self, db, harvest, hubspot, github, fireflies, slack, sync_settings, hubspot_settings
    ) -> None:
        _seed_mapped_client(db)
        harvest.pages = {"invoices": numbered_pages([_invoice(1, 10), _invoice(2, 20)], 100)}
        service = _service(harvest, hubspot, github, fireflies, slack, sync_settings, hubspot_settings)

        result = service.sync_harvest_invoices(db)

        assert result.status == SyncResultStatus.COMPLETED
        assert (result.found, result.created, result.updated) == (2, 2, 0)
        assert result.errors == ()
        assert result.actions_performed == 1
        skipped = [outcome for outcome in result.action_outcomes if outcome.status is ActionStatus.SKIPPED]
        assert [outcome.reason for outcome in skipped] == [SKIP_NO_MAPPING]
        assert len(hubspot.deals) == 1

        run = db.get(SyncRunLog, result.run_log_id)
        assert run.status == SyncRunStatus.COMPLETED
        assert (run.found, run.created, run.actions_performed, run.failed) == (2, 2, 1, 0)

        mapped = db.scalars(select(HarvestInvoice).where(HarvestInvoice.harvest_id == "1")).one()
        assert mapped.crm_deal_id == "deal-1"
        assert mapped.harvest_company_id is not None

    def test_rerun_updates_and_repeats_no_action(
        self, db, harvest, hubspot, github, fireflies, slack, sync_settings, hubspot_settings
    ) -> None:
        _seed_mapped_client(db)
        harvest.pages = {"invoices": numbered_pages([_invoice(1, 10), _invoice(2, 20)], 100)}
        service = _service(harvest, hubspot, github, fireflies, slack, sync_settings, hubspot_settings)

        service.sync_harvest_invoices(db)
        second = service.sync_harvest_invoices(db)

        assert (second.created, second.updated) == (0, 2)
        assert second.actions_performed == 0
        assert len(hubspot.deals) == 1
        assert db.scalar(select(func.count()).select_from(HarvestInvoice)) == 2

    def test_draft_invoice_gets_no_deal(
        self, db, harvest, hubspot, github, fireflies, slack, sync_settings, hubspot_settings
    ) -> None:
        _seed_mapped_client(db)
        harvest.pages = {"invoices": numbered_pages([_invoice(1, 10, state="draft")], 100)}
        service = _service(harvest, hubspot, github, fireflies, slack, sync_settings, hubspot_settings)

        result = service.sync_harvest_invoices(db)

        assert result.created == 1
        assert result.action_outcomes == ()
        assert hubspot.deals == []

    def test_client_change_to_unknown_client_clears_company_link(
        self, db, harvest, hubspot, github, fireflies, slack, sync_settings, hubspot_settings
    ) -> None:
        _seed_mapped_client(db)
        service = _service(harvest, hubspot, github, fireflies, slack, sync_settings, hubspot_settings)
        harvest.pages = {"invoices": numbered_pages([_invoice(1, 10, state="draft")], 100)}
        service.sync_harvest_invoices(db)

        harvest.pages = {"invoices": numbered_pages([_invoice(1, 99)], 100)}
        result = service.sync_harvest_invoices(db)

        invoice = db.scalars(select(HarvestInvoice).where(HarvestInvoice.harvest_id == "1")).one()
        assert invoice.harvest_client_id == "99"
        assert invoice.harvest_company_id is None
        assert [outcome.reason for outcome in result.action_outcomes] == [SKIP_NO_MAPPING]
        assert hubspot.deals == []

    def test_deal_failure_is_item_error(
        self, db, harvest, hubspot, github, fireflies, slack, sync_settings, hubspot_settings
    ) -> None:
        _seed_mapped_client(db)
        harvest.pages = {"invoices": numbered_pages([_invoice(1, 10)], 100)}
        hubspot.fail_writes_with = ConnectorRequestError("HubSpot: HTTP 429: Too many requests", status_code=429)
        service = _service(harvest, hubspot, github, fireflies, slack, sync_settings, hubspot_settings)

        result = service.sync_harvest_invoices(db)

        assert result.status == SyncResultStatus.COMPLETED
        assert result.created == 1
        assert result.errors == ("Error creating deal for invoice 1: [rate_limited] HubSpot: HTTP 429: Too many requests",)
        assert result.is_partial is True

    def test_first_page_failure_fails_run(
        self, db, harvest, hubspot, github, fireflies, slack, sync_settings, hubspot_settings
    ) -> None:
        harvest.pages = {"invoices": {1: ConnectorRequestError("Harvest: HTTP 503: unavailable", status_code=503)}}
        service = _service(harvest, hubspot, github, fireflies, slack, sync_settings, hubspot_settings)

        result = service.sync_harvest_invoices(db)

        assert result.status == SyncResultStatus.FAILED
        assert result.created == 0
        assert len(result.errors) == 1
        assert result.errors[0].startswith("Error fetching invoice list from Harvest")
        run = db.get(SyncRunLog, result.run_log_id)
        assert run.status == SyncRunStatus.FAILED
        assert run.error_message == result.fatal_error
        assert db.scalar(select(func.count()).select_from(SyncRunLogDetail)) == 0
        assert db.scalar(select(func.count()).select_from(HarvestInvoice)) == 0

    def test_missing_credentials_opens_no_run(
        self, db, hubspot, github, fireflies, slack, sync_settings, hubspot_settings
    ) -> None:
        harvest = FakeConnector("Harvest", missing=["HARVEST_ACCESS_TOKEN"])
        service = _service(harvest, hubspot, github, fireflies, slack, sync_settings, hubspot_settings)

        result = service.sync_harvest_invoices(db)

        assert result.status == SyncResultStatus.FAILED
        assert result.fatal_category == MISSING_CREDENTIALS
        assert result.run_log_id is None
        assert db.scalar(select(func.count()).select_from(SyncRunLog)) == 0
        assert harvest.page_calls == []

    def test_bad_item_is_skipped_with_error(
        self, db, harvest, hubspot, github, fireflies, slack, sync_settings, hubspot_settings
    ) -> None:
        items = [{"number": "INV-X"}, _invoice(2, 20)]
        harvest.pages = {"invoices": numbered_pages(items, 100)}
        service = _service(harvest, hubspot, github, fireflies, slack, sync_settings, hubspot_settings)

        result = service.sync_harvest_invoices(db, create_deals=False)

        assert result.status == SyncResultStatus.COMPLETED
        assert (result.created, result.skipped) == (1, 1)
        assert result.errors[0].startswith("Error processing invoice (no id):")


# ---------------------------------------------------------------------------
# Pagination through the pipeline
# ---------------------------------------------------------------------------


class TestPagedSources:
    def test_later_page_failure_keeps_earlier_items(
        self, db, hubspot, github, fireflies, slack, sync_settings, hubspot_settings
    ) -> None:
        harvest = FakeConnector("Harvest", page_size=2)
        pages = numbered_pages([{"id": n, "name": f"Client {n}"} for n in range(1, 5)], 2)
        pages[2] = ConnectorRequestError("Harvest: HTTP 502: bad gateway", status_code=502)
        harvest.pages = {"clients": pages}
        service = _service(harvest, hubspot, github, fireflies, slack, sync_settings, hubspot_settings)

        result = service.sync_harvest_companies(db)

        assert result.status == SyncResultStatus.COMPLETED
        assert result.created == 2
        assert result.errors == ("Error fetching page 2: Harvest: HTTP 502: bad gateway",)

    def test_slack_follows_cursor_past_short_pages(
        self, db, harvest, hubspot, github, fireflies, slack, sync_settings, hubspot_settings
    ) -> None:
        slack.pages = {
            "channels": {
                None: Page(items=[{"id": "C1", "name": "general"}], next_token="c2"),
                "c2": Page(items=[{"id": "C2", "name": "acme-client"}], next_token=None),
            }
        }
        service = _service(harvest, hubspot, github, fireflies, slack, sync_settings, hubspot_settings)

        result = service.sync_slack_channels(db)

        assert result.created == 2
        assert db.scalar(select(func.count()).select_from(SlackChannel)) == 2

    def test_fireflies_offset_pages(
        self, db, harvest, hubspot, github, fireflies, slack, sync_settings, hubspot_settings
    ) -> None:
        fireflies.pages = {"transcripts": {0: Page(items=[{"id": "ff-1", "title": "Weekly"}], next_token=None)}}
        service = _service(harvest, hubspot, github, fireflies, slack, sync_settings, hubspot_settings)

        result = service.sync_meeting_notes(db)

        assert result.created == 1
        assert fireflies.page_calls == [("transcripts", 0)]


# ---------------------------------------------------------------------------
# Meeting note auto-post
# ---------------------------------------------------------------------------


class TestMeetingNoteAutoPost:
    def test_linked_note_posted_once(
        self, db, harvest, hubspot, github, fireflies, slack, sync_settings, hubspot_settings
    ) -> None:
        crm = CrmCompany(company_id="hs-5", name="Acme")
        db.add(crm)
        db.commit()
        db.add(MeetingNote(meeting_id="ff-1", title="Weekly", crm_company_id=crm.id))
        db.commit()
        fireflies.pages = {"transcripts": {0: Page(items=[{"id": "ff-1", "title": "Weekly sync"}], next_token=None)}}
        service = _service(harvest, hubspot, github, fireflies, slack, sync_settings, hubspot_settings)

        first = service.sync_meeting_notes(db, post_linked_notes=True)
        second = service.sync_meeting_notes(db, post_linked_notes=True)

        assert first.updated == 1
        assert first.actions_performed == 1
        assert second.actions_performed == 0
        assert len(hubspot.notes) == 1
        note = db.scalars(select(MeetingNote)).one()
        assert note.crm_company_id == crm.id
        assert note.title == "Weekly sync"

    def test_auto_post_off_by_default(
        self, db, harvest, hubspot, github, fireflies, slack, sync_settings, hubspot_settings
    ) -> None:
        crm = CrmCompany(company_id="hs-5", name="Acme")
        db.add(crm)
        db.commit()
        db.add(MeetingNote(meeting_id="ff-1", crm_company_id=crm.id))
        db.commit()
        fireflies.pages = {"transcripts": {0: Page(items=[{"id": "ff-1"}], next_token=None)}}
        service = _service(harvest, hubspot, github, fireflies, slack, sync_settings, hubspot_settings)

        service.sync_meeting_notes(db)

        assert hubspot.notes == []


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------


class TestDispatch:
    def test_run_all_covers_every_record_kind(
        self, db, harvest, hubspot, github, fireflies, slack, sync_settings, hubspot_settings
    ) -> None:
        service = _service(harvest, hubspot, github, fireflies, slack, sync_settings, hubspot_settings)

        results = service.run_all(db)

        assert [result.kind for result in results] == list(SyncKind.RECORD_KINDS)
        assert all(result.status == SyncResultStatus.COMPLETED for result in results)

    def test_unknown_kind(self, db, harvest, hubspot, github, fireflies, slack, sync_settings, hubspot_settings) -> None:
        service = _service(harvest, hubspot, github, fireflies, slack, sync_settings, hubspot_settings)
        with pytest.raises(ValueError, match="Unknown sync kind"):
            service.run_kind(db, "jira_issues")
