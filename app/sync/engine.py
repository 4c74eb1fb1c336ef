"""
app/sync/engine.py

Record sync pipeline shared by every mirrored entity kind:

    open run log -> stream pages -> normalize -> reconcile
    -> action trigger (eligible records only) -> finalize run log

Pages and items are processed one at a time. Item-level problems are
recorded and processing continues; only a first-page failure or an
unexpected exception fails the run.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.domain.sync import SyncResult, SyncResultStatus
from app.sync.actions import ActionOutcome, ActionStatus, ActionTrigger
from app.sync.errors import classify_error, format_error
from app.sync.exceptions import FirstPageFetchError
from app.sync.logging_utils import log_event
from app.sync.normalizers import NormalizedRecord
from app.sync.pagination import PaginatedFetcher
from app.sync.reconciler import Reconciler, ReconcileStatus, RecordKind
from app.sync.run_tracker import RunTracker

logger = logging.getLogger(__name__)

Normalizer = Callable[[dict[str, Any]], NormalizedRecord]
Enricher = Callable[[Session, NormalizedRecord], NormalizedRecord]


@dataclass(frozen=True)
class RecordSyncJob:
    """
    Declarative description of one record sync.

    `enrich` fills locally derived fields (e.g. the resolved Harvest
    company of an invoice) after normalization and before reconciliation.
    """

    kind: str
    item_label: str
    record_kind: RecordKind
    build_fetcher: Callable[[], PaginatedFetcher]
    normalize: Normalizer
    enrich: Enricher | None = None
    action: ActionTrigger | None = None
    action_label: str = "performing action for"


@dataclass
class _RunState:
    errors: list[str] = field(default_factory=list)
    normalize_skipped: int = 0
    action_outcomes: list[ActionOutcome] = field(default_factory=list)


def run_record_sync(
    db: Session,
    job: RecordSyncJob,
    *,
    tracker: RunTracker,
    trigger: str,
) -> SyncResult:
    run_id = tracker.open(job.kind, trigger)
    reconciler = Reconciler(db, job.record_kind)
    state = _RunState()
    fetcher = job.build_fetcher()

    try:
        for batch in fetcher.iter_pages():
            tracker.record_found(run_id, fetcher.found)
            for item in batch:
                _process_item(db, job, reconciler, state, item)
    except FirstPageFetchError as exc:
        classified = classify_error(exc.cause)
        message = format_error(f"Error fetching {job.item_label} list from {exc.source}", classified)
        tracker.fail(run_id, message)
        log_event(logger, logging.WARNING, "sync_run_aborted", kind=job.kind, run_log_id=run_id, error=message)
        return SyncResult(
            kind=job.kind,
            status=SyncResultStatus.FAILED,
            run_log_id=run_id,
            errors=(message,),
            fatal_error=message,
            fatal_category=classified.category.value,
        )
    except Exception as exc:  # noqa: BLE001
        db.rollback()
        logger.exception("Sync run crashed kind=%s run_log_id=%s", job.kind, run_id)
        classified = classify_error(exc)
        message = format_error(f"{job.kind} sync failed", classified)
        tracker.fail(run_id, message, created=reconciler.tally.created, updated=reconciler.tally.updated)
        return SyncResult(
            kind=job.kind,
            status=SyncResultStatus.FAILED,
            run_log_id=run_id,
            found=fetcher.found,
            created=reconciler.tally.created,
            updated=reconciler.tally.updated,
            skipped=reconciler.tally.skipped + state.normalize_skipped,
            errors=tuple([*state.errors, message]),
            fatal_error=message,
            fatal_category=classified.category.value,
            action_outcomes=tuple(state.action_outcomes),
        )

    if fetcher.page_error_message:
        state.errors.append(fetcher.page_error_message)

    tally = reconciler.tally
    skipped = tally.skipped + state.normalize_skipped
    performed = sum(1 for outcome in state.action_outcomes if outcome.status is ActionStatus.PERFORMED)
    tracker.record_found(run_id, fetcher.found)
    tracker.finalize(
        run_id,
        created=tally.created,
        updated=tally.updated,
        errors=state.errors,
        skipped=skipped,
        actions_performed=performed,
    )
    return SyncResult(
        kind=job.kind,
        status=SyncResultStatus.COMPLETED,
        run_log_id=run_id,
        found=fetcher.found,
        created=tally.created,
        updated=tally.updated,
        skipped=skipped,
        errors=tuple(state.errors),
        action_outcomes=tuple(state.action_outcomes),
    )


def _process_item(
    db: Session,
    job: RecordSyncJob,
    reconciler: Reconciler,
    state: _RunState,
    item: Any,
) -> None:
    source_id = item.get("id") if isinstance(item, dict) else None
    context = f"Error processing {job.item_label} {source_id if source_id is not None else '(no id)'}"

    try:
        record = job.normalize(item)
        if job.enrich is not None:
            record = job.enrich(db, record)
    except Exception as exc:  # noqa: BLE001
        state.normalize_skipped += 1
        state.errors.append(format_error(context, exc))
        logger.warning("Item skipped during normalization kind=%s source_id=%s error=%s", job.kind, source_id, exc)
        return

    try:
        outcome = reconciler.reconcile(record)
    except SQLAlchemyError as exc:
        db.rollback()
        reconciler.tally.skipped += 1
        state.errors.append(format_error(context, exc))
        logger.exception("Item reconcile failed kind=%s source_id=%s", job.kind, source_id)
        return

    if outcome.status is ReconcileStatus.SKIPPED:
        state.errors.append(
            f"{context}: Duplicate entry ({job.record_kind.natural_key_attr} {outcome.natural_key} already exists)"
        )
        return

    action = job.action
    if action is None or outcome.record is None or not action.is_eligible(outcome.record):
        return

    action_outcome = action.perform(outcome.record.id)
    state.action_outcomes.append(action_outcome)
    if action_outcome.status is ActionStatus.FAILED:
        state.errors.append(
            f"Error {job.action_label} {job.item_label} {record.natural_key}: {action_outcome.message}"
        )


def with_fields(record: NormalizedRecord, **fields: Any) -> NormalizedRecord:
    return replace(record, fields={**record.fields, **fields})
