"""
db/models/slack_channel.py

Slack channel mirrored from the messaging platform.
"""

from __future__ import annotations

from sqlalchemy import Boolean, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, TimestampMixin


class SlackChannel(Base, TimestampMixin):
    __tablename__ = "slack_channels"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    channel_id: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_private: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_archived: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    member_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    topic: Mapped[str | None] = mapped_column(Text, nullable=True)
    purpose: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_client: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        comment="Operator flag, never written by sync",
    )

    __table_args__ = (
        UniqueConstraint("channel_id", name="uq_slack_channels_channel_id"),
    )
