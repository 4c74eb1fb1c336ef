"""
app/sync/run_tracker.py

Lifecycle of one sync run's audit log: running -> completed | failed.

The audit trail must never block the business sync: every write commits on
its own, and a failed write is rolled back and logged. `open` returns None
when the row cannot be created, and every other operation is a no-op for a
None run id.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Sequence

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.sync.errors import summarize_errors
from app.sync.logging_utils import log_event
from db.models.sync_run import SyncRunLog, SyncRunStatus, SyncTrigger
from db.repositories.sync_run_repository import SyncRunRepository

logger = logging.getLogger(__name__)


class RunTracker:
    def __init__(self, db: Session, *, max_stored_errors: int = 500) -> None:
        self._db = db
        self._repository = SyncRunRepository(db)
        self._max_stored_errors = max(1, max_stored_errors)

    def open(self, kind: str, trigger: str = SyncTrigger.MANUAL) -> int | None:
        try:
            run = self._repository.create_run(kind=kind, trigger=trigger)
            run_id = run.id
            self._db.commit()
        except SQLAlchemyError:
            self._db.rollback()
            logger.exception("Run log could not be opened kind=%s; continuing without audit", kind)
            return None
        log_event(logger, logging.INFO, "sync_run_opened", kind=kind, run_log_id=run_id, trigger=trigger)
        return run_id

    def record_found(self, run_id: int | None, found: int) -> None:
        if run_id is None:
            return
        self._write(run_id, "record_found", lambda run: setattr(run, "found", max(run.found or 0, found)))

    def record_detail(
        self,
        run_id: int | None,
        *,
        subject_type: str,
        subject_id: int,
        status: str,
        actions_performed: int = 0,
        error_message: str | None = None,
    ) -> None:
        if run_id is None:
            return
        try:
            self._repository.add_detail(
                run_id=run_id,
                subject_type=subject_type,
                subject_id=subject_id,
                status=status,
                actions_performed=actions_performed,
                error_message=error_message,
            )
            self._db.commit()
        except IntegrityError:
            self._db.rollback()
            logger.info(
                "Run detail already recorded run_log_id=%s subject=%s:%s",
                run_id,
                subject_type,
                subject_id,
            )
        except SQLAlchemyError:
            self._db.rollback()
            logger.exception("Run detail could not be written run_log_id=%s", run_id)

    def finalize(
        self,
        run_id: int | None,
        *,
        created: int,
        updated: int,
        errors: Sequence[str],
        skipped: int = 0,
        actions_performed: int = 0,
    ) -> None:
        if run_id is None:
            return

        def apply(run: SyncRunLog) -> None:
            run.status = SyncRunStatus.COMPLETED
            run.completed_at = datetime.now(timezone.utc)
            run.created = created
            run.updated = updated
            run.skipped = skipped
            run.actions_performed = actions_performed
            run.failed = len(errors)
            run.errors = self._stored_errors(errors)

        if self._write(run_id, "finalize", apply):
            log_event(
                logger,
                logging.INFO,
                "sync_run_completed",
                run_log_id=run_id,
                created=created,
                updated=updated,
                skipped=skipped,
                failed=len(errors),
                actions_performed=actions_performed,
            )

    def fail(
        self,
        run_id: int | None,
        message: str,
        *,
        created: int | None = None,
        updated: int | None = None,
    ) -> None:
        if run_id is None:
            return

        def apply(run: SyncRunLog) -> None:
            run.status = SyncRunStatus.FAILED
            run.completed_at = datetime.now(timezone.utc)
            run.error_message = message[:2000]
            all_errors = [*(run.errors or []), message]
            run.errors = self._stored_errors(all_errors)
            run.failed = len(all_errors)
            if created is not None:
                run.created = created
            if updated is not None:
                run.updated = updated

        if self._write(run_id, "fail", apply):
            log_event(logger, logging.WARNING, "sync_run_failed", run_log_id=run_id, error=message)

    def _stored_errors(self, errors: Sequence[str]) -> list[str]:
        return summarize_errors(errors, limit=self._max_stored_errors)

    def _write(self, run_id: int, operation: str, apply: Callable[[SyncRunLog], None]) -> bool:
        try:
            run = self._repository.get_run(run_id)
            if run is None:
                logger.warning("Run log missing run_log_id=%s operation=%s", run_id, operation)
                return False
            if run.status != SyncRunStatus.RUNNING:
                logger.warning(
                    "Run log already closed run_log_id=%s status=%s operation=%s",
                    run_id,
                    run.status,
                    operation,
                )
                return False
            apply(run)
            self._db.commit()
            return True
        except SQLAlchemyError:
            self._db.rollback()
            logger.exception("Run log write failed run_log_id=%s operation=%s", run_id, operation)
            return False
