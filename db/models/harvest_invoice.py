"""
db/models/harvest_invoice.py

Harvest invoice mirrored from the time/billing system.

`crm_deal_id` is the action reference for deal creation: once set it is
never written by reconciliation.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Index, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, JSONType, TimestampMixin


class HarvestInvoice(Base, TimestampMixin):
    __tablename__ = "harvest_invoices"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    harvest_id: Mapped[str] = mapped_column(String(64), nullable=False)
    harvest_client_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    client_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    number: Mapped[str | None] = mapped_column(String(64), nullable=True)
    purchase_order: Mapped[str | None] = mapped_column(String(255), nullable=True)
    subject: Mapped[str | None] = mapped_column(String(500), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    currency: Mapped[str | None] = mapped_column(String(8), nullable=True)
    state: Mapped[str | None] = mapped_column(
        String(32),
        nullable=True,
        comment="draft, open, paid, closed",
    )
    amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    due_amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    tax: Mapped[Decimal | None] = mapped_column(Numeric(8, 3), nullable=True)
    tax_amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    discount: Mapped[Decimal | None] = mapped_column(Numeric(8, 3), nullable=True)
    discount_amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    issue_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    paid_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    payment_term: Mapped[str | None] = mapped_column(String(64), nullable=True)
    source_created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    source_updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    payload: Mapped[dict[str, Any] | None] = mapped_column(
        JSONType,
        nullable=True,
        comment="Raw invoice payload as last observed",
    )

    harvest_company_id: Mapped[int | None] = mapped_column(
        ForeignKey("harvest_companies.id", ondelete="SET NULL"),
        nullable=True,
    )
    crm_deal_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    deal_paid_synced: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    deal_synced_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("harvest_id", name="uq_harvest_invoices_harvest_id"),
        Index("ix_harvest_invoices_state", "state"),
        Index("ix_harvest_invoices_harvest_company_id", "harvest_company_id"),
        Index("ix_harvest_invoices_crm_deal_id", "crm_deal_id"),
    )
