"""Marketplace contract between a client and a talent (creator)."""

from __future__ import annotations

from uuid import UUID, uuid4

from sqlalchemy import ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from nexus_compliance.models.base import Base, TimestampMixin


class Contract(Base, TimestampMixin):
    """Contract header. Only the parties matter to this core."""

    __tablename__ = "nexus_contracts"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    client_id: Mapped[UUID] = mapped_column(
        ForeignKey("user_profiles.id"), nullable=False
    )
    creator_id: Mapped[UUID] = mapped_column(
        ForeignKey("user_profiles.id"), nullable=False
    )
    title: Mapped[str | None] = mapped_column(String, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="active")

    __table_args__ = (
        Index("nexus_contracts_by_client", "client_id"),
        Index("nexus_contracts_by_creator", "creator_id"),
    )
