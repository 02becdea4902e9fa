"""Escrow ledger model: funds held against one contract."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from nexus_compliance.models.base import Base, TimestampMixin, UpdatedAtMixin


class EscrowRecord(Base, TimestampMixin, UpdatedAtMixin):
    """Escrow balance per contract.

    CRITICAL: balances are only changed through single atomic statements
    (upsert on funding, conditional update on debit). Never read, add and
    write back.
    """

    __tablename__ = "nexus_escrow_ledger"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    contract_id: Mapped[UUID] = mapped_column(
        ForeignKey("nexus_contracts.id"), nullable=False, unique=True
    )
    client_id: Mapped[UUID] = mapped_column(ForeignKey("user_profiles.id"), nullable=False)
    creator_id: Mapped[UUID] = mapped_column(ForeignKey("user_profiles.id"), nullable=False)
    escrow_balance: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )
    funds_deposited: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )
    funds_released: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )
    status: Mapped[str] = mapped_column(String, nullable=False, default="unfunded")
    funded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint("escrow_balance >= 0", name="escrow_balance_nonneg_ck"),
        CheckConstraint("escrow_balance <= funds_deposited", name="escrow_balance_le_deposited_ck"),
        CheckConstraint("funds_released >= 0", name="escrow_released_nonneg_ck"),
        CheckConstraint("status IN ('unfunded', 'funded')", name="escrow_status_ck"),
    )
