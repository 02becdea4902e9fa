"""User and talent profile models.

These rows are owned by the identity and profile services; this core only
reads them to resolve roles and AZ eligibility.
"""

from __future__ import annotations

from uuid import UUID, uuid4

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, String, false
from sqlalchemy.orm import Mapped, mapped_column

from nexus_compliance.models.base import Base, TimestampMixin


class UserProfile(Base, TimestampMixin):
    """Platform user with a coarse account type."""

    __tablename__ = "user_profiles"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    email: Mapped[str | None] = mapped_column(String, nullable=True)
    user_type: Mapped[str] = mapped_column(String, nullable=False, default="user")

    __table_args__ = (
        CheckConstraint(
            "user_type IN ('admin', 'creator', 'client', 'staff', 'user')",
            name="user_profiles_user_type_ck",
        ),
    )


class TalentProfile(Base, TimestampMixin):
    """Contractor compliance profile linked to one user."""

    __tablename__ = "nexus_talent_profiles"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("user_profiles.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    legal_first_name: Mapped[str | None] = mapped_column(String, nullable=True)
    legal_last_name: Mapped[str | None] = mapped_column(String, nullable=True)
    tax_classification: Mapped[str | None] = mapped_column(String, nullable=True)
    residency_state: Mapped[str | None] = mapped_column(String(2), nullable=True)
    az_eligible: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )

    @property
    def legal_name(self) -> str | None:
        """Get full legal name, if recorded."""
        parts = [p for p in (self.legal_first_name, self.legal_last_name) if p]
        return " ".join(parts) or None
