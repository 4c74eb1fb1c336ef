"""
db/models/meeting_note.py

Meeting transcript mirrored from Fireflies.

`crm_company_id` is an operator link; `crm_note_id` is the action reference
for posting the note to the CRM.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, JSONType, TimestampMixin


class MeetingNote(Base, TimestampMixin):
    __tablename__ = "meeting_notes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    meeting_id: Mapped[str] = mapped_column(String(128), nullable=False)
    title: Mapped[str | None] = mapped_column(String(500), nullable=True)
    meeting_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    duration_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    participants: Mapped[list[str] | None] = mapped_column(JSONType, nullable=True)
    transcript_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    crm_company_id: Mapped[int | None] = mapped_column(
        ForeignKey("crm_companies.id", ondelete="SET NULL"),
        nullable=True,
    )
    crm_note_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    synced_to_crm_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("meeting_id", name="uq_meeting_notes_meeting_id"),
        Index("ix_meeting_notes_meeting_date", "meeting_date"),
        Index("ix_meeting_notes_crm_company_id", "crm_company_id"),
    )
