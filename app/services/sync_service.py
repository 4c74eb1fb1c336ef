"""
app/services/sync_service.py

Entry points for record syncs and single-record actions.

Each sync method checks the source credentials first: a missing credential
returns a failed result without opening a run log. Clients are passed in
explicitly, so callers (routers, scheduler jobs, tests) decide which
instances a run talks to.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.config import HubSpotSettings, SyncSettings, get_hubspot_settings, get_sync_settings
from app.connectors.clients import SyncClients, build_sync_clients
from app.domain.sync import MISSING_CREDENTIALS, SyncKind, SyncResult, SyncResultStatus
from app.sync.actions import (
    ActionOutcome,
    CrmClient,
    InvoiceDealTrigger,
    MeetingNoteTrigger,
)
from app.sync.engine import RecordSyncJob, run_record_sync, with_fields
from app.sync.exceptions import ActionNotAllowedError, RecordNotFoundError
from app.sync.normalizers import (
    NormalizedRecord,
    normalize_crm_company,
    normalize_github_repository,
    normalize_harvest_client,
    normalize_harvest_invoice,
    normalize_meeting_transcript,
    normalize_slack_channel,
)
from app.sync.pagination import PaginatedFetcher
from app.sync.reconciler import (
    CRM_COMPANY_KIND,
    GITHUB_REPOSITORY_KIND,
    HARVEST_COMPANY_KIND,
    HARVEST_INVOICE_KIND,
    MEETING_NOTE_KIND,
    SLACK_CHANNEL_KIND,
)
from app.sync.run_tracker import RunTracker
from db.models.harvest_company import HarvestCompany
from db.models.harvest_invoice import HarvestInvoice
from db.models.meeting_note import MeetingNote
from db.models.sync_run import SyncTrigger

logger = logging.getLogger(__name__)


class PagedSource(Protocol):
    page_size: int

    def missing_credentials(self) -> list[str]: ...


class SyncService:
    def __init__(
        self,
        *,
        harvest: Any,
        hubspot: Any,
        github: Any,
        fireflies: Any,
        slack: Any,
        settings: SyncSettings | None = None,
        hubspot_settings: HubSpotSettings | None = None,
    ) -> None:
        self._harvest = harvest
        self._hubspot = hubspot
        self._github = github
        self._fireflies = fireflies
        self._slack = slack
        self._settings = settings or get_sync_settings()
        self._hubspot_settings = hubspot_settings or get_hubspot_settings()

    @classmethod
    def from_clients(cls, clients: SyncClients) -> SyncService:
        return cls(
            harvest=clients.harvest,
            hubspot=clients.hubspot,
            github=clients.github,
            fireflies=clients.fireflies,
            slack=clients.slack,
        )

    # ------------------------------------------------------------------
    # Record syncs
    # ------------------------------------------------------------------

    def sync_harvest_companies(self, db: Session, *, trigger: str = SyncTrigger.MANUAL) -> SyncResult:
        job = RecordSyncJob(
            kind=SyncKind.HARVEST_COMPANIES,
            item_label="client",
            record_kind=HARVEST_COMPANY_KIND,
            build_fetcher=lambda: self._fetcher(self._harvest, self._harvest.fetch_clients_page, first_token=1),
            normalize=normalize_harvest_client,
        )
        return self._run(db, job, self._harvest, trigger)

    def sync_harvest_invoices(
        self,
        db: Session,
        *,
        trigger: str = SyncTrigger.MANUAL,
        create_deals: bool = True,
    ) -> SyncResult:
        action = None
        if create_deals:
            missing = self._hubspot.missing_credentials()
            if missing:
                logger.warning("Deal creation disabled for this run; missing %s", ", ".join(missing))
            else:
                action = InvoiceDealTrigger(db, self._crm, settings=self._hubspot_settings)

        job = RecordSyncJob(
            kind=SyncKind.HARVEST_INVOICES,
            item_label="invoice",
            record_kind=HARVEST_INVOICE_KIND,
            build_fetcher=lambda: self._fetcher(self._harvest, self._harvest.fetch_invoices_page, first_token=1),
            normalize=normalize_harvest_invoice,
            enrich=resolve_invoice_company,
            action=action,
            action_label="creating deal for",
        )
        return self._run(db, job, self._harvest, trigger)

    def sync_crm_companies(self, db: Session, *, trigger: str = SyncTrigger.MANUAL) -> SyncResult:
        job = RecordSyncJob(
            kind=SyncKind.CRM_COMPANIES,
            item_label="company",
            record_kind=CRM_COMPANY_KIND,
            build_fetcher=lambda: self._fetcher(self._hubspot, self._hubspot.fetch_companies_page),
            normalize=normalize_crm_company,
        )
        return self._run(db, job, self._hubspot, trigger)

    def sync_github_repositories(self, db: Session, *, trigger: str = SyncTrigger.MANUAL) -> SyncResult:
        job = RecordSyncJob(
            kind=SyncKind.GITHUB_REPOSITORIES,
            item_label="repository",
            record_kind=GITHUB_REPOSITORY_KIND,
            build_fetcher=lambda: self._fetcher(self._github, self._github.fetch_repositories_page, first_token=1),
            normalize=normalize_github_repository,
        )
        return self._run(db, job, self._github, trigger)

    def sync_meeting_notes(
        self,
        db: Session,
        *,
        trigger: str = SyncTrigger.MANUAL,
        post_linked_notes: bool | None = None,
    ) -> SyncResult:
        if post_linked_notes is None:
            post_linked_notes = self._settings.meeting_notes_auto_post
        action = None
        if post_linked_notes and not self._hubspot.missing_credentials():
            action = MeetingNoteTrigger(db, self._crm)

        max_items = min(self._settings.max_items, getattr(self._fireflies, "max_items", self._settings.max_items))
        job = RecordSyncJob(
            kind=SyncKind.MEETING_NOTES,
            item_label="meeting",
            record_kind=MEETING_NOTE_KIND,
            build_fetcher=lambda: self._fetcher(
                self._fireflies,
                self._fireflies.fetch_transcripts_page,
                first_token=0,
                max_items=max_items,
            ),
            normalize=normalize_meeting_transcript,
            action=action,
            action_label="posting note for",
        )
        return self._run(db, job, self._fireflies, trigger)

    def sync_slack_channels(self, db: Session, *, trigger: str = SyncTrigger.MANUAL) -> SyncResult:
        job = RecordSyncJob(
            kind=SyncKind.SLACK_CHANNELS,
            item_label="channel",
            record_kind=SLACK_CHANNEL_KIND,
            build_fetcher=lambda: self._fetcher(
                self._slack,
                self._slack.fetch_channels_page,
                stop_on_short_page=False,
            ),
            normalize=normalize_slack_channel,
        )
        return self._run(db, job, self._slack, trigger)

    def run_kind(self, db: Session, kind: str, *, trigger: str = SyncTrigger.MANUAL) -> SyncResult:
        runners = {
            SyncKind.HARVEST_COMPANIES: self.sync_harvest_companies,
            SyncKind.HARVEST_INVOICES: self.sync_harvest_invoices,
            SyncKind.CRM_COMPANIES: self.sync_crm_companies,
            SyncKind.GITHUB_REPOSITORIES: self.sync_github_repositories,
            SyncKind.MEETING_NOTES: self.sync_meeting_notes,
            SyncKind.SLACK_CHANNELS: self.sync_slack_channels,
        }
        runner = runners.get(kind)
        if runner is None:
            raise ValueError(f"Unknown sync kind '{kind}'. Allowed: {', '.join(SyncKind.RECORD_KINDS)}")
        return runner(db, trigger=trigger)

    def run_all(self, db: Session, *, trigger: str = SyncTrigger.MANUAL) -> list[SyncResult]:
        """
        Run every record sync in dependency order: companies before invoices
        so invoice company resolution sees the latest clients.
        """

        results: list[SyncResult] = []
        for kind in SyncKind.RECORD_KINDS:
            try:
                results.append(self.run_kind(db, kind, trigger=trigger))
            except Exception as exc:  # noqa: BLE001
                db.rollback()
                logger.exception("Sync kind crashed outside the run pipeline kind=%s", kind)
                results.append(
                    SyncResult(
                        kind=kind,
                        status=SyncResultStatus.FAILED,
                        errors=(f"{kind} sync failed: {exc}",),
                        fatal_error=f"{kind} sync failed: {exc}",
                    )
                )
        return results

    # ------------------------------------------------------------------
    # Single-record actions
    # ------------------------------------------------------------------

    def create_deal_for_invoice(self, db: Session, invoice_id: int) -> ActionOutcome:
        invoice = db.get(HarvestInvoice, invoice_id)
        if invoice is None:
            raise RecordNotFoundError(f"Invoice with ID {invoice_id} not found")
        if (invoice.state or "").lower() == "draft":
            raise ActionNotAllowedError(f"Invoice {invoice_id} is in Draft state; deals are only created for issued invoices")
        self._require_crm()
        return InvoiceDealTrigger(db, self._crm, settings=self._hubspot_settings).perform(invoice_id)

    def post_meeting_note(self, db: Session, meeting_note_id: int) -> ActionOutcome:
        note = db.get(MeetingNote, meeting_note_id)
        if note is None:
            raise RecordNotFoundError(f"Meeting note with ID {meeting_note_id} not found")
        if note.crm_company_id is None:
            raise ActionNotAllowedError(f"Meeting note {meeting_note_id} is not linked to a CRM company")
        self._require_crm()
        return MeetingNoteTrigger(db, self._crm).perform(meeting_note_id)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @property
    def _crm(self) -> CrmClient:
        return self._hubspot

    def _require_crm(self) -> None:
        missing = self._hubspot.missing_credentials()
        if missing:
            raise ActionNotAllowedError(f"Missing credentials: {', '.join(missing)}")

    def _fetcher(
        self,
        source: PagedSource,
        fetch_page: Any,
        *,
        first_token: Any = None,
        max_items: int | None = None,
        stop_on_short_page: bool = True,
    ) -> PaginatedFetcher:
        return PaginatedFetcher(
            fetch_page,
            page_size=source.page_size,
            max_items=max_items or self._settings.max_items,
            first_token=first_token,
            source=getattr(source, "source", type(source).__name__),
            stop_on_short_page=stop_on_short_page,
        )

    def _run(self, db: Session, job: RecordSyncJob, source: PagedSource, trigger: str) -> SyncResult:
        missing = source.missing_credentials()
        if missing:
            message = f"Missing credentials: {', '.join(missing)}"
            logger.warning("Sync not started kind=%s reason=%s", job.kind, message)
            return SyncResult(
                kind=job.kind,
                status=SyncResultStatus.FAILED,
                errors=(message,),
                fatal_error=message,
                fatal_category=MISSING_CREDENTIALS,
            )

        tracker = RunTracker(db, max_stored_errors=self._settings.max_stored_errors)
        result = run_record_sync(db, job, tracker=tracker, trigger=trigger)
        logger.info(
            "Sync finished kind=%s status=%s run_log_id=%s found=%s created=%s updated=%s skipped=%s errors=%s",
            result.kind,
            result.status,
            result.run_log_id,
            result.found,
            result.created,
            result.updated,
            result.skipped,
            len(result.errors),
        )
        return result


def resolve_invoice_company(db: Session, record: NormalizedRecord) -> NormalizedRecord:
    """
    Set the local Harvest company id from the invoice's client. A missing or
    not yet mirrored client clears the link, so a deal is never created on a
    previous client's company.
    """

    client_id = record.fields.get("harvest_client_id")
    company_id = None
    if client_id:
        company_id = db.scalars(select(HarvestCompany.id).where(HarvestCompany.harvest_id == client_id)).first()
    return with_fields(record, harvest_company_id=company_id)


def get_sync_service() -> SyncService:
    """
    Build a service with freshly constructed clients for one invocation.
    """

    return SyncService.from_clients(build_sync_clients())
