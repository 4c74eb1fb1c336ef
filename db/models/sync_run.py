"""
db/models/sync_run.py

Audit log of synchronization runs and their per-item outcomes.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, JSONType, TimestampMixin


class SyncRunStatus:
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class SyncTrigger:
    MANUAL = "manual"
    SCHEDULED = "scheduled"


class SyncDetailStatus:
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


class SyncRunLog(Base, TimestampMixin):
    __tablename__ = "sync_run_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    kind: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        comment="harvest_invoices, crm_companies, release_notes, ...",
    )
    trigger: Mapped[str] = mapped_column(String(16), nullable=False, default=SyncTrigger.MANUAL)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=SyncRunStatus.RUNNING)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    found: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    skipped: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    failed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    actions_performed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    errors: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("ix_sync_run_logs_kind", "kind"),
        Index("ix_sync_run_logs_status", "status"),
        Index("ix_sync_run_logs_started_at", "started_at"),
    )


class SyncRunLogDetail(Base, TimestampMixin):
    __tablename__ = "sync_run_log_details"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    run_log_id: Mapped[int] = mapped_column(
        ForeignKey("sync_run_logs.id", ondelete="CASCADE"),
        nullable=False,
    )
    subject_type: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        comment="repository_mapping, harvest_invoice, ...",
    )
    subject_id: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    actions_performed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "run_log_id",
            "subject_type",
            "subject_id",
            name="uq_sync_run_log_details_run_log_id_subject_type_subject_id",
        ),
        Index("ix_sync_run_log_details_run_log_id", "run_log_id"),
    )
