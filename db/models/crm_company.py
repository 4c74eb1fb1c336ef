"""
db/models/crm_company.py

HubSpot company mirrored from the CRM.
"""

from __future__ import annotations

from sqlalchemy import Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, TimestampMixin


class CrmCompany(Base, TimestampMixin):
    __tablename__ = "crm_companies"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    company_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        comment="HubSpot company id (natural key)",
    )
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    domain: Mapped[str | None] = mapped_column(String(255), nullable=True)
    owner_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    abbreviation: Mapped[str | None] = mapped_column(
        String(16),
        nullable=True,
        comment="Operator-owned short code, never written by sync",
    )

    __table_args__ = (
        UniqueConstraint("company_id", name="uq_crm_companies_company_id"),
        UniqueConstraint("abbreviation", name="uq_crm_companies_abbreviation"),
    )
