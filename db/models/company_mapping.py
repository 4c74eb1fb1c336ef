"""
db/models/company_mapping.py

Operator-maintained associations between CRM companies and records of other
systems.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, TimestampMixin


class CompanyMapping(Base, TimestampMixin):
    """CRM company <-> Harvest company."""

    __tablename__ = "harvest_company_mappings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    crm_company_id: Mapped[int] = mapped_column(
        ForeignKey("crm_companies.id", ondelete="CASCADE"),
        nullable=False,
    )
    harvest_company_id: Mapped[int] = mapped_column(
        ForeignKey("harvest_companies.id", ondelete="CASCADE"),
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint(
            "crm_company_id",
            "harvest_company_id",
            name="uq_harvest_company_mappings_crm_company_id_harvest_company_id",
        ),
        Index("ix_harvest_company_mappings_harvest_company_id", "harvest_company_id"),
    )


class RepositoryMapping(Base, TimestampMixin):
    """
    CRM company <-> GitHub repository.

    The last_release_* columns are the release-note cursor and are only
    advanced after a note was posted for that release.
    """

    __tablename__ = "repository_company_mappings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    crm_company_id: Mapped[int] = mapped_column(
        ForeignKey("crm_companies.id", ondelete="CASCADE"),
        nullable=False,
    )
    github_repository_id: Mapped[int] = mapped_column(
        ForeignKey("github_repositories.id", ondelete="CASCADE"),
        nullable=False,
    )
    last_release_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    last_release_tag_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    last_release_published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_posted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "crm_company_id",
            "github_repository_id",
            name="uq_repository_company_mappings_crm_company_id_github_repository_id",
        ),
        Index("ix_repository_company_mappings_github_repository_id", "github_repository_id"),
    )
