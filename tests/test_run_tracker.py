"""
tests/test_run_tracker.py

Pytest unit tests for the run audit log lifecycle.

Coverage
--------
- open -> finalize / fail transitions and counter storage
- Closed runs are never rewritten
- Detail rows: one per subject per run
- Audit write failures never propagate
- Stale running-run detection
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from sqlalchemy.exc import OperationalError

from app.sync.run_tracker import RunTracker
from db.models import SyncDetailStatus, SyncRunLog, SyncRunStatus, SyncTrigger
from db.repositories.sync_run_repository import SyncRunRepository


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


class TestLifecycle:
    def test_open_creates_running_row(self, db) -> None:
        run_id = RunTracker(db).open("harvest_invoices", SyncTrigger.SCHEDULED)

        run = db.get(SyncRunLog, run_id)
        assert run.status == SyncRunStatus.RUNNING
        assert run.trigger == SyncTrigger.SCHEDULED
        assert run.completed_at is None

    def test_finalize_stores_counters(self, db) -> None:
        tracker = RunTracker(db)
        run_id = tracker.open("harvest_invoices")
        tracker.record_found(run_id, 12)

        tracker.finalize(run_id, created=2, updated=9, skipped=1, errors=["Error processing invoice 7: boom"], actions_performed=1)

        run = db.get(SyncRunLog, run_id)
        assert run.status == SyncRunStatus.COMPLETED
        assert run.completed_at is not None
        assert (run.found, run.created, run.updated, run.skipped, run.failed) == (12, 2, 9, 1, 1)
        assert run.actions_performed == 1
        assert run.errors == ["Error processing invoice 7: boom"]

    def test_record_found_never_decreases(self, db) -> None:
        tracker = RunTracker(db)
        run_id = tracker.open("crm_companies")
        tracker.record_found(run_id, 40)
        tracker.record_found(run_id, 10)
        assert db.get(SyncRunLog, run_id).found == 40

    def test_fail_keeps_partial_counts(self, db) -> None:
        tracker = RunTracker(db)
        run_id = tracker.open("harvest_invoices")

        tracker.fail(run_id, "Harvest: failed to fetch first page: boom", created=0, updated=0)

        run = db.get(SyncRunLog, run_id)
        assert run.status == SyncRunStatus.FAILED
        assert run.error_message.startswith("Harvest")
        assert run.errors == ["Harvest: failed to fetch first page: boom"]
        assert run.failed == 1

    def test_closed_run_is_not_rewritten(self, db) -> None:
        tracker = RunTracker(db)
        run_id = tracker.open("harvest_invoices")
        tracker.finalize(run_id, created=1, updated=0, errors=[])

        tracker.fail(run_id, "late failure")
        tracker.finalize(run_id, created=99, updated=99, errors=[])

        run = db.get(SyncRunLog, run_id)
        assert run.status == SyncRunStatus.COMPLETED
        assert run.created == 1
        assert run.error_message is None

    def test_stored_errors_are_capped(self, db) -> None:
        tracker = RunTracker(db, max_stored_errors=3)
        run_id = tracker.open("slack_channels")

        tracker.finalize(run_id, created=0, updated=0, errors=[f"e{n}" for n in range(5)])

        run = db.get(SyncRunLog, run_id)
        assert run.failed == 5
        assert run.errors == ["e0", "e1", "e2", "... and 2 more"]

    def test_none_run_id_is_noop(self, db) -> None:
        tracker = RunTracker(db)
        tracker.record_found(None, 3)
        tracker.record_detail(None, subject_type="x", subject_id=1, status=SyncDetailStatus.SUCCESS)
        tracker.finalize(None, created=0, updated=0, errors=[])
        tracker.fail(None, "ignored")
        assert db.query(SyncRunLog).count() == 0


# ---------------------------------------------------------------------------
# Details
# ---------------------------------------------------------------------------


class TestDetails:
    def test_one_detail_per_subject(self, db) -> None:
        tracker = RunTracker(db)
        run_id = tracker.open("release_notes")

        tracker.record_detail(run_id, subject_type="repository_mapping", subject_id=4, status=SyncDetailStatus.SUCCESS, actions_performed=2)
        tracker.record_detail(run_id, subject_type="repository_mapping", subject_id=4, status=SyncDetailStatus.FAILED)

        details = SyncRunRepository(db).list_details(run_id)
        assert len(details) == 1
        assert details[0].status == SyncDetailStatus.SUCCESS
        assert details[0].actions_performed == 2


# ---------------------------------------------------------------------------
# Failure isolation
# ---------------------------------------------------------------------------


class TestAuditFailures:
    def test_open_failure_returns_none(self, db, monkeypatch) -> None:
        tracker = RunTracker(db)

        def broken(**kwargs):
            raise OperationalError("INSERT", {}, Exception("database is locked"))

        monkeypatch.setattr(tracker._repository, "create_run", broken)

        assert tracker.open("harvest_invoices") is None


# ---------------------------------------------------------------------------
# Staleness
# ---------------------------------------------------------------------------


class TestStaleness:
    def test_old_running_run_is_stale(self, db) -> None:
        run_id = RunTracker(db).open("harvest_invoices")
        run = db.get(SyncRunLog, run_id)
        later = datetime.now(timezone.utc) + timedelta(minutes=121)

        assert SyncRunRepository.is_stale(run, max_minutes=120, now=later) is True
        assert SyncRunRepository.is_stale(run, max_minutes=120) is False

    def test_completed_run_is_never_stale(self, db) -> None:
        tracker = RunTracker(db)
        run_id = tracker.open("harvest_invoices")
        tracker.finalize(run_id, created=0, updated=0, errors=[])
        run = db.get(SyncRunLog, run_id)
        later = datetime.now(timezone.utc) + timedelta(days=1)

        assert SyncRunRepository.is_stale(run, max_minutes=120, now=later) is False
