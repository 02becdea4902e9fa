"""Compliance event model: the system of record for compliance reporting."""

from __future__ import annotations

from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, Index, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from nexus_compliance.models.base import Base, TimestampMixin


class ComplianceEvent(Base, TimestampMixin):
    """Append-only ledger entry for any state-changing action.

    CRITICAL: rows are never updated or deleted.
    """

    __tablename__ = "nexus_compliance_events"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    entity_type: Mapped[str] = mapped_column(String, nullable=False)
    entity_id: Mapped[UUID] = mapped_column(nullable=False)
    event_type: Mapped[str] = mapped_column(String, nullable=False)
    event_category: Mapped[str] = mapped_column(String, nullable=False)
    actor_id: Mapped[UUID | None] = mapped_column(nullable=True)
    actor_role: Mapped[str | None] = mapped_column(String, nullable=True)
    realm_context: Mapped[str | None] = mapped_column(String, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    payload: Mapped[dict[str, Any]] = mapped_column(nullable=False, default=dict)
    financial_amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    legal_entity: Mapped[str | None] = mapped_column(String, nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String, nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String, nullable=True)

    __table_args__ = (
        CheckConstraint(
            """event_category IN (
                'compliance', 'financial', 'access',
                'data_change', 'tax_reporting', 'legal'
            )""",
            name="compliance_event_category_ck",
        ),
        Index("nexus_compliance_events_by_entity", "entity_type", "entity_id"),
        Index("nexus_compliance_events_by_type", "event_type", "created_at"),
    )
