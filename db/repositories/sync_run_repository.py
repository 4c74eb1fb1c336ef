"""
Repository for sync run log lifecycle persistence and lookup.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from sqlalchemy import Select, select
from sqlalchemy.orm import Session

from db.base import as_utc
from db.models.sync_run import SyncRunLog, SyncRunLogDetail, SyncRunStatus


class SyncRunRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def create_run(self, *, kind: str, trigger: str) -> SyncRunLog:
        run = SyncRunLog(
            kind=kind,
            trigger=trigger,
            status=SyncRunStatus.RUNNING,
            started_at=datetime.now(timezone.utc),
            errors=[],
        )
        self._session.add(run)
        self._session.flush()
        self._session.refresh(run)
        return run

    def get_run(self, run_id: int) -> SyncRunLog | None:
        return self._session.get(SyncRunLog, run_id)

    def list_runs(
        self,
        *,
        limit: int = 50,
        kind: str | None = None,
        status: str | None = None,
    ) -> list[SyncRunLog]:
        stmt: Select[tuple[SyncRunLog]] = select(SyncRunLog)

        if kind:
            stmt = stmt.where(SyncRunLog.kind == kind)
        if status:
            stmt = stmt.where(SyncRunLog.status == status)

        stmt = stmt.order_by(SyncRunLog.started_at.desc(), SyncRunLog.id.desc()).limit(max(1, limit))
        return list(self._session.scalars(stmt).all())

    def list_details(self, run_id: int) -> list[SyncRunLogDetail]:
        stmt = (
            select(SyncRunLogDetail)
            .where(SyncRunLogDetail.run_log_id == run_id)
            .order_by(SyncRunLogDetail.id.asc())
        )
        return list(self._session.scalars(stmt).all())

    def add_detail(
        self,
        *,
        run_id: int,
        subject_type: str,
        subject_id: int,
        status: str,
        actions_performed: int = 0,
        error_message: str | None = None,
    ) -> SyncRunLogDetail:
        detail = SyncRunLogDetail(
            run_log_id=run_id,
            subject_type=subject_type,
            subject_id=subject_id,
            status=status,
            actions_performed=actions_performed,
            error_message=error_message,
        )
        self._session.add(detail)
        self._session.flush()
        return detail

    @staticmethod
    def is_stale(run: SyncRunLog, *, max_minutes: int, now: datetime | None = None) -> bool:
        """
        A run still marked running after `max_minutes` was most likely killed
        with its process.
        """

        if run.status != SyncRunStatus.RUNNING:
            return False
        started_at = as_utc(run.started_at)
        if started_at is None:
            return False
        current = now or datetime.now(timezone.utc)
        return current - started_at > timedelta(minutes=max_minutes)
