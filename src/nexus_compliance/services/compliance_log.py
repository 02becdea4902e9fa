"""Compliance event log: append-only audit sink for every state change.

Events are:
- Immutable once written (no update or delete paths exist)
- Typed on the way in (ComplianceEventRecord) and serialized to JSON payloads
- Written inside the caller's unit of work

Write failures follow an explicit AuditFailurePolicy:
- STRICT: the failure aborts the whole operation (workflow transitions)
- BEST_EFFORT: the failure is logged at ERROR level and the operation
  continues (record edits that already succeeded)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from nexus_compliance.errors import PersistenceError
from nexus_compliance.models import ComplianceEvent

logger = logging.getLogger(__name__)


class EventCategory(str, Enum):
    """Event categories for routing and filtering."""

    COMPLIANCE = "compliance"
    FINANCIAL = "financial"
    ACCESS = "access"
    DATA_CHANGE = "data_change"
    TAX_REPORTING = "tax_reporting"
    LEGAL = "legal"


class AuditFailurePolicy(str, Enum):
    """What to do when an event cannot be written."""

    STRICT = "strict"
    BEST_EFFORT = "best_effort"


@dataclass(frozen=True)
class RequestContext:
    """Provenance of the request that caused a state change."""

    ip_address: str | None = None
    user_agent: str | None = None

    @classmethod
    def system(cls) -> RequestContext:
        """Context for changes not triggered by an HTTP request."""
        return cls(ip_address=None, user_agent="system")


@dataclass(frozen=True)
class ComplianceEventRecord:
    """A compliance event about to be appended."""

    entity_type: str
    entity_id: UUID
    event_type: str
    event_category: EventCategory
    actor_id: UUID | None = None
    actor_role: str | None = None
    realm_context: str | None = None
    description: str | None = None
    payload: dict[str, Any] = field(default_factory=dict)
    financial_amount: Decimal | None = None
    legal_entity: str | None = None

    def to_row(self, context: RequestContext) -> ComplianceEvent:
        """Build the ORM row for this record."""
        return ComplianceEvent(
            entity_type=self.entity_type,
            entity_id=self.entity_id,
            event_type=self.event_type,
            event_category=self.event_category.value,
            actor_id=self.actor_id,
            actor_role=self.actor_role,
            realm_context=self.realm_context,
            description=self.description,
            payload=serialize_payload(self.payload),
            financial_amount=self.financial_amount,
            legal_entity=self.legal_entity,
            ip_address=context.ip_address,
            user_agent=context.user_agent,
        )


class ComplianceEventLog:
    """Append-only compliance event sink bound to one unit of work.

    Usage:
        events = ComplianceEventLog(session)
        await events.record(
            ComplianceEventRecord(
                entity_type="escrow",
                entity_id=escrow.id,
                event_type="escrow_funded",
                event_category=EventCategory.FINANCIAL,
                financial_amount=amount,
            ),
            context,
        )
    """

    def __init__(self, session: AsyncSession, legal_entity: str | None = None):
        self._session = session
        self._legal_entity = legal_entity

    async def record(
        self,
        record: ComplianceEventRecord,
        context: RequestContext,
        policy: AuditFailurePolicy = AuditFailurePolicy.STRICT,
    ) -> ComplianceEvent | None:
        """Append one event.

        Returns the stored row, or None when a BEST_EFFORT write failed.

        Raises:
            PersistenceError: STRICT write failed
        """
        row = record.to_row(context)
        if row.legal_entity is None:
            row.legal_entity = self._legal_entity

        if policy is AuditFailurePolicy.STRICT:
            try:
                await self._write(row)
            except SQLAlchemyError as exc:
                logger.exception(
                    "Compliance event %s for %s %s could not be written",
                    record.event_type,
                    record.entity_type,
                    record.entity_id,
                )
                raise PersistenceError(
                    "Compliance event could not be recorded",
                    event_type=record.event_type,
                ) from exc
            return row

        try:
            async with self._session.begin_nested():
                await self._write(row)
        except SQLAlchemyError:
            logger.exception(
                "AUDIT GAP: compliance event %s for %s %s was not written; "
                "operation continues under best-effort policy",
                record.event_type,
                record.entity_type,
                record.entity_id,
            )
            return None
        return row

    async def _write(self, row: ComplianceEvent) -> None:
        self._session.add(row)
        await self._session.flush()

    async def get_by_entity(self, entity_type: str, entity_id: UUID) -> list[ComplianceEvent]:
        """Get events for a specific entity, oldest first."""
        result = await self._session.execute(
            select(ComplianceEvent)
            .where(
                ComplianceEvent.entity_type == entity_type,
                ComplianceEvent.entity_id == entity_id,
            )
            .order_by(ComplianceEvent.created_at.asc())
        )
        return list(result.scalars().all())

    async def get_by_type(self, event_type: str) -> list[ComplianceEvent]:
        """Get all events of one type, oldest first."""
        result = await self._session.execute(
            select(ComplianceEvent)
            .where(ComplianceEvent.event_type == event_type)
            .order_by(ComplianceEvent.created_at.asc())
        )
        return list(result.scalars().all())

    async def count(self, event_type: str | None = None) -> int:
        """Count stored events, optionally of one type."""
        query = select(func.count()).select_from(ComplianceEvent)
        if event_type is not None:
            query = query.where(ComplianceEvent.event_type == event_type)
        return await self._session.scalar(query) or 0


def serialize_payload(obj: Any) -> Any:
    """Recursively serialize objects for JSON compatibility."""
    if isinstance(obj, dict):
        return {str(k): serialize_payload(v) for k, v in obj.items()}
    elif isinstance(obj, (list, tuple, set, frozenset)):
        return [serialize_payload(v) for v in obj]
    elif isinstance(obj, UUID):
        return str(obj)
    elif isinstance(obj, (datetime, date)):
        return obj.isoformat()
    elif isinstance(obj, Decimal):
        return str(obj)
    elif isinstance(obj, Enum):
        return obj.value
    return obj
