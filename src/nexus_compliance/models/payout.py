"""Payout model: one scheduled or completed payment to a talent."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from nexus_compliance.models.base import Base, TimestampMixin, UpdatedAtMixin


class Payout(Base, TimestampMixin, UpdatedAtMixin):
    """Payout owned by the payroll subsystem.

    Created by the scheduler once approved time accumulates; advanced only by
    the payroll batch processor.
    """

    __tablename__ = "nexus_payouts"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    talent_profile_id: Mapped[UUID] = mapped_column(
        ForeignKey("nexus_talent_profiles.id"), nullable=False
    )
    contract_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("nexus_contracts.id"), nullable=True
    )
    gross_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    net_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="pending")
    scheduled_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    failure_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    tax_year: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        CheckConstraint("net_amount >= 0", name="payout_net_nonneg_ck"),
        CheckConstraint("net_amount <= gross_amount", name="payout_net_le_gross_ck"),
        CheckConstraint(
            "status IN ('pending', 'processing', 'completed', 'failed')",
            name="payout_status_ck",
        ),
        Index("nexus_payouts_by_status", "status", "tax_year"),
        Index("nexus_payouts_by_talent", "talent_profile_id"),
    )
