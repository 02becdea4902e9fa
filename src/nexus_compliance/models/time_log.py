"""Time log and time log audit models."""

from __future__ import annotations

from datetime import date, datetime, time
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    Time,
    false,
    true,
)
from sqlalchemy.orm import Mapped, mapped_column

from nexus_compliance.models.base import Base, TimestampMixin, UpdatedAtMixin


class TimeLog(Base, TimestampMixin, UpdatedAtMixin):
    """One unit of reported work.

    ``submission_status`` is only ever changed by the time log service
    through conditional updates on the expected source status.
    """

    __tablename__ = "nexus_time_logs"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    talent_profile_id: Mapped[UUID] = mapped_column(
        ForeignKey("nexus_talent_profiles.id", ondelete="CASCADE"),
        nullable=False,
    )
    contract_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("nexus_contracts.id"), nullable=True
    )
    milestone_id: Mapped[UUID | None] = mapped_column(nullable=True)

    log_date: Mapped[date] = mapped_column(Date, nullable=False)
    start_time: Mapped[time | None] = mapped_column(Time, nullable=True)
    end_time: Mapped[time | None] = mapped_column(Time, nullable=True)
    hours_worked: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    task_category: Mapped[str | None] = mapped_column(String, nullable=True)

    location_type: Mapped[str] = mapped_column(String, nullable=False, default="remote")
    location_state: Mapped[str | None] = mapped_column(String(2), nullable=True)
    location_city: Mapped[str | None] = mapped_column(String, nullable=True)
    location_latitude: Mapped[Decimal | None] = mapped_column(Numeric(9, 6), nullable=True)
    location_longitude: Mapped[Decimal | None] = mapped_column(Numeric(9, 6), nullable=True)
    location_verified: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    az_eligible_hours: Mapped[Decimal] = mapped_column(
        Numeric(6, 2), nullable=False, default=Decimal("0")
    )
    billable: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=true()
    )

    submission_status: Mapped[str] = mapped_column(String, nullable=False, default="draft")
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_by: Mapped[UUID | None] = mapped_column(
        ForeignKey("user_profiles.id"), nullable=True
    )

    __table_args__ = (
        CheckConstraint("hours_worked > 0 AND hours_worked <= 24", name="time_log_hours_ck"),
        CheckConstraint(
            "az_eligible_hours >= 0 AND az_eligible_hours <= hours_worked",
            name="time_log_az_hours_ck",
        ),
        CheckConstraint(
            "location_type IN ('remote', 'onsite', 'hybrid')",
            name="time_log_location_type_ck",
        ),
        CheckConstraint(
            "submission_status IN ('draft', 'submitted', 'approved', 'rejected')",
            name="time_log_status_ck",
        ),
        Index("nexus_time_logs_by_talent", "talent_profile_id", "log_date"),
        Index("nexus_time_logs_by_status", "submission_status", "log_date"),
    )


class TimeLogAudit(Base, TimestampMixin):
    """Immutable record of one decision applied to a time log.

    Append-only: rows are inserted once per transition and never updated.
    """

    __tablename__ = "nexus_time_log_audits"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    time_log_id: Mapped[UUID] = mapped_column(
        ForeignKey("nexus_time_logs.id", ondelete="CASCADE"), nullable=False
    )
    reviewer_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("user_profiles.id"), nullable=True
    )
    audit_type: Mapped[str] = mapped_column(String, nullable=False)
    decision: Mapped[str] = mapped_column(String, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String, nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "audit_type IN ('review', 'approval', 'rejection', 'correction')",
            name="time_log_audit_type_ck",
        ),
        CheckConstraint(
            "decision IN ('submitted', 'approved', 'rejected', 'needs_correction')",
            name="time_log_audit_decision_ck",
        ),
        Index("nexus_time_log_audits_by_log", "time_log_id", "created_at"),
    )
