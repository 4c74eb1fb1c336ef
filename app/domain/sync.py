"""
app/domain/sync.py

Result objects returned by every sync entry point.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from app.sync.actions import ActionOutcome, ActionStatus


class SyncKind:
    HARVEST_COMPANIES = "harvest_companies"
    HARVEST_INVOICES = "harvest_invoices"
    CRM_COMPANIES = "crm_companies"
    GITHUB_REPOSITORIES = "github_repositories"
    MEETING_NOTES = "meeting_notes"
    SLACK_CHANNELS = "slack_channels"
    RELEASE_NOTES = "release_notes"
    INVOICE_DEALS = "invoice_deals"

    RECORD_KINDS = (
        HARVEST_COMPANIES,
        CRM_COMPANIES,
        HARVEST_INVOICES,
        GITHUB_REPOSITORIES,
        SLACK_CHANNELS,
        MEETING_NOTES,
    )
    MAPPING_KINDS = (RELEASE_NOTES, INVOICE_DEALS)


class SyncResultStatus:
    COMPLETED = "completed"
    FAILED = "failed"


# Fatal category of a run refused because local credentials are not configured.
MISSING_CREDENTIALS = "missing_credentials"


@dataclass(frozen=True)
class SyncResult:
    """
    Outcome of one record sync run.

    `status` is failed only for run-level faults (missing credentials,
    first page failure, unexpected exception). Item errors leave the run
    completed with a non-empty `errors` list.
    """

    kind: str
    status: str
    run_log_id: int | None = None
    found: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0
    errors: tuple[str, ...] = ()
    fatal_error: str | None = None
    fatal_category: str | None = None
    action_outcomes: tuple[ActionOutcome, ...] = field(default_factory=tuple)

    @property
    def failed(self) -> int:
        return len(self.errors)

    @property
    def is_partial(self) -> bool:
        return self.status == SyncResultStatus.COMPLETED and bool(self.errors)

    @property
    def actions_performed(self) -> int:
        return sum(1 for outcome in self.action_outcomes if outcome.status is ActionStatus.PERFORMED)

    @property
    def actions_skipped(self) -> int:
        return sum(1 for outcome in self.action_outcomes if outcome.status is ActionStatus.SKIPPED)

    @property
    def actions_failed(self) -> int:
        return sum(1 for outcome in self.action_outcomes if outcome.status is ActionStatus.FAILED)


@dataclass(frozen=True)
class MappingOutcome:
    """
    Per-item result of a mapping-shaped run, mirrored into a run log detail.
    """

    subject_type: str
    subject_id: int
    status: str
    actions_performed: int = 0
    error_message: str | None = None
    detail: str | None = None


@dataclass(frozen=True)
class MappingSyncResult:
    kind: str
    status: str
    run_log_id: int | None = None
    mappings_processed: int = 0
    actions_performed: int = 0
    skipped: int = 0
    errors: tuple[str, ...] = ()
    mapping_results: tuple[MappingOutcome, ...] = ()
    dry_run: bool = False
    fatal_error: str | None = None
    fatal_category: str | None = None

    @property
    def failed(self) -> int:
        return len(self.errors)

    @property
    def is_partial(self) -> bool:
        return self.status == SyncResultStatus.COMPLETED and bool(self.errors)
