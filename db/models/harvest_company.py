"""
db/models/harvest_company.py

Harvest client mirrored from the time/billing system.
"""

from __future__ import annotations

from sqlalchemy import Boolean, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, TimestampMixin


class HarvestCompany(Base, TimestampMixin):
    __tablename__ = "harvest_companies"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    harvest_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        comment="Harvest client id (natural key)",
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        UniqueConstraint("harvest_id", name="uq_harvest_companies_harvest_id"),
    )
