"""Per-time-log decision history."""

from __future__ import annotations

from typing import Iterable
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from nexus_compliance.models import TimeLogAudit
from nexus_compliance.services.compliance_log import RequestContext


class TimeLogAuditTrail:
    """Append-only audit rows, one per time log transition.

    Rows are written in the same unit of work as the transition they
    describe; there is no best-effort mode here.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def append(
        self,
        *,
        time_log_id: UUID,
        decision: str,
        audit_type: str,
        context: RequestContext,
        reviewer_id: UUID | None = None,
        notes: str | None = None,
    ) -> TimeLogAudit:
        """Append one audit row."""
        audit = TimeLogAudit(
            time_log_id=time_log_id,
            reviewer_id=reviewer_id,
            audit_type=audit_type,
            decision=decision,
            notes=notes,
            ip_address=context.ip_address,
            user_agent=context.user_agent,
        )
        self.session.add(audit)
        await self.session.flush()
        return audit

    async def append_many(
        self,
        *,
        time_log_ids: Iterable[UUID],
        decision: str,
        audit_type: str,
        context: RequestContext,
        reviewer_id: UUID | None = None,
        notes: str | None = None,
    ) -> list[TimeLogAudit]:
        """Append the same decision for several time logs."""
        audits = [
            TimeLogAudit(
                time_log_id=time_log_id,
                reviewer_id=reviewer_id,
                audit_type=audit_type,
                decision=decision,
                notes=notes,
                ip_address=context.ip_address,
                user_agent=context.user_agent,
            )
            for time_log_id in time_log_ids
        ]
        self.session.add_all(audits)
        await self.session.flush()
        return audits

    async def history(self, time_log_id: UUID) -> list[TimeLogAudit]:
        """Get the decision history of one time log, oldest first."""
        result = await self.session.execute(
            select(TimeLogAudit)
            .where(TimeLogAudit.time_log_id == time_log_id)
            .order_by(TimeLogAudit.created_at.asc())
        )
        return list(result.scalars().all())

    async def count(self, time_log_id: UUID | None = None) -> int:
        """Count audit rows, optionally for one time log."""
        query = select(func.count()).select_from(TimeLogAudit)
        if time_log_id is not None:
            query = query.where(TimeLogAudit.time_log_id == time_log_id)
        return await self.session.scalar(query) or 0
