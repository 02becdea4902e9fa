"""Payroll batch processor - advances payouts through the processing pipeline.

Key invariants:
1. Only admins read or advance payouts
2. Each status flip is one conditional UPDATE on the expected source status,
   so a payout is moved by exactly one caller even under concurrent batches
3. Aggregates and emitted totals are computed from the rows actually moved,
   never from the ids requested
4. Amounts are summed as Decimal; nothing passes through float
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Sequence
from uuid import UUID, uuid4

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from nexus_compliance.errors import NothingToProcessError, ValidationError
from nexus_compliance.models import Payout, TalentProfile, TimeLog, utcnow
from nexus_compliance.services.authorization import AuthorizationGuard, Caller, Role
from nexus_compliance.services.compliance_log import (
    ComplianceEventLog,
    ComplianceEventRecord,
    EventCategory,
    RequestContext,
)
from nexus_compliance.services.escrow_ledger import CENT, EscrowLedger
from nexus_compliance.services.state_machine import (
    PayoutStateMachine,
    PayoutStatus,
    TimeLogStatus,
)

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


@dataclass(frozen=True)
class PayoutFilters:
    """Filters for listing payouts."""

    status: PayoutStatus | None = None
    tax_year: int | None = None
    start_date: date | None = None
    end_date: date | None = None


@dataclass(frozen=True)
class PayoutRow:
    """A payout joined with the talent's tax identity."""

    payout: Payout
    talent_user_id: UUID
    legal_name: str | None
    tax_classification: str | None
    residency_state: str | None


@dataclass(frozen=True)
class PayoutListing:
    """Filtered payouts and their aggregates."""

    rows: list[PayoutRow]
    total_payouts: int
    pending_amount: Decimal
    processed_amount: Decimal


@dataclass(frozen=True)
class BatchResult:
    """Result of advancing a batch of payouts."""

    batch_id: UUID
    payouts: list[Payout]
    processed_count: int
    total_amount: Decimal
    excluded_ids: list[UUID] = field(default_factory=list)


@dataclass(frozen=True)
class YearSummary:
    """Jurisdiction reporting rollup for one tax year."""

    tax_year: int
    total_payouts: Decimal
    pending_payouts: Decimal
    processing_payouts: Decimal
    total_az_hours: Decimal
    payout_count: int


def sum_amounts(amounts: Sequence[Decimal]) -> Decimal:
    """Exact currency sum."""
    return sum((Decimal(str(a)) for a in amounts), ZERO).quantize(CENT)


class PayrollBatchProcessor:
    """Service for payout listing, batch processing and year-end rollups."""

    def __init__(
        self,
        session: AsyncSession,
        *,
        escrow: EscrowLedger | None = None,
        realm_context: str = "corp",
        legal_entity: str | None = None,
    ):
        self.session = session
        self.realm_context = realm_context
        self.legal_entity = legal_entity
        self.events = ComplianceEventLog(session, legal_entity=legal_entity)
        self.escrow = escrow or EscrowLedger(
            session, realm_context=realm_context, legal_entity=legal_entity
        )

    async def list_payouts(self, caller: Caller, filters: PayoutFilters) -> PayoutListing:
        """List payouts with pending and processed aggregates."""
        AuthorizationGuard.require_admin(caller, "list payouts")

        query = select(Payout, TalentProfile).join(
            TalentProfile, TalentProfile.id == Payout.talent_profile_id
        )
        if filters.status:
            query = query.where(Payout.status == PayoutStatus(filters.status).value)
        if filters.tax_year:
            query = query.where(Payout.tax_year == filters.tax_year)
        if filters.start_date:
            query = query.where(Payout.scheduled_date >= filters.start_date)
        if filters.end_date:
            query = query.where(Payout.scheduled_date <= filters.end_date)

        result = await self.session.execute(query.order_by(Payout.created_at.desc()))
        rows = [
            PayoutRow(
                payout=payout,
                talent_user_id=talent.user_id,
                legal_name=talent.legal_name,
                tax_classification=talent.tax_classification,
                residency_state=talent.residency_state,
            )
            for payout, talent in result.all()
        ]

        return PayoutListing(
            rows=rows,
            total_payouts=len(rows),
            pending_amount=sum_amounts(
                [r.payout.net_amount for r in rows if r.payout.status == PayoutStatus.PENDING.value]
            ),
            processed_amount=sum_amounts(
                [r.payout.net_amount for r in rows if r.payout.status == PayoutStatus.COMPLETED.value]
            ),
        )

    async def process_batch(
        self,
        caller: Caller,
        payout_ids: Sequence[UUID],
        context: RequestContext,
    ) -> BatchResult:
        """Move the pending subset of ``payout_ids`` to processing.

        Ids that are not pending are excluded and reported; they do not
        affect the others. Does not move money.

        Raises:
            AuthorizationError: caller is not an admin
            ValidationError: no ids given
            NothingToProcessError: none of the ids is pending
        """
        AuthorizationGuard.require_admin(caller, "process payouts")
        return await self._advance(
            caller,
            payout_ids,
            PayoutStatus.PROCESSING,
            context,
            event_type="payroll_batch_processing",
            verb="Processing",
        )

    async def complete_payouts(
        self,
        caller: Caller,
        payout_ids: Sequence[UUID],
        context: RequestContext,
    ) -> BatchResult:
        """Mark processing payouts completed and debit their contract escrow.

        Each moved payout with a contract debits that contract's escrow by its
        net amount in the same unit of work. If any debit fails the whole
        batch fails.

        Raises:
            AuthorizationError: caller is not an admin
            NothingToProcessError: none of the ids is processing
            InsufficientEscrowError: an escrow balance cannot cover a payout
        """
        AuthorizationGuard.require_admin(caller, "complete payouts")
        result = await self._advance(
            caller,
            payout_ids,
            PayoutStatus.COMPLETED,
            context,
            event_type="payroll_batch_completed",
            verb="Completed",
        )
        for payout in result.payouts:
            if payout.contract_id is None:
                continue
            await self.escrow.debit(
                caller,
                payout.contract_id,
                payout.net_amount,
                context,
                reference={"payout_id": payout.id, "batch_id": result.batch_id},
            )
        return result

    async def fail_payouts(
        self,
        caller: Caller,
        payout_ids: Sequence[UUID],
        reason: str,
        context: RequestContext,
    ) -> BatchResult:
        """Mark processing payouts failed with a reason. No money moves."""
        AuthorizationGuard.require_admin(caller, "fail payouts")
        if not reason or not reason.strip():
            raise ValidationError("failure reason required")
        return await self._advance(
            caller,
            payout_ids,
            PayoutStatus.FAILED,
            context,
            event_type="payroll_batch_failed",
            verb="Failed",
            failure_reason=reason.strip(),
        )

    async def year_summary(self, caller: Caller, tax_year: int | None = None) -> YearSummary:
        """Completed vs pending totals for a tax year plus approved AZ hours."""
        AuthorizationGuard.require_admin(caller, "view payroll summary")
        year = tax_year or utcnow().year

        result = await self.session.execute(
            select(Payout.net_amount, Payout.status).where(Payout.tax_year == year)
        )
        payouts = result.all()

        def total(status: PayoutStatus) -> Decimal:
            return sum_amounts([p.net_amount for p in payouts if p.status == status.value])

        az_hours = await self.session.execute(
            select(TimeLog.az_eligible_hours).where(
                TimeLog.submission_status == TimeLogStatus.APPROVED.value,
                TimeLog.log_date >= date(year, 1, 1),
                TimeLog.log_date <= date(year, 12, 31),
            )
        )
        total_az_hours = sum((Decimal(str(h)) for h in az_hours.scalars().all()), ZERO).quantize(CENT)

        return YearSummary(
            tax_year=year,
            total_payouts=total(PayoutStatus.COMPLETED),
            pending_payouts=total(PayoutStatus.PENDING),
            processing_payouts=total(PayoutStatus.PROCESSING),
            total_az_hours=total_az_hours,
            payout_count=len(payouts),
        )

    async def _advance(
        self,
        caller: Caller,
        payout_ids: Sequence[UUID],
        target: PayoutStatus,
        context: RequestContext,
        *,
        event_type: str,
        verb: str,
        failure_reason: str | None = None,
    ) -> BatchResult:
        ids = list(dict.fromkeys(payout_ids))
        if not ids:
            raise ValidationError("payout_ids array required")

        sources = [s.value for s in PayoutStateMachine.sources_for(target)]
        now = utcnow()
        values: dict[str, object] = {"status": target.value, "updated_at": now}
        if target is PayoutStatus.COMPLETED:
            values["processed_at"] = now
        if failure_reason is not None:
            values["failure_reason"] = failure_reason

        result = await self.session.execute(
            update(Payout)
            .where(Payout.id.in_(ids), Payout.status.in_(sources))
            .values(**values)
            .returning(Payout.id, Payout.net_amount)
            .execution_options(synchronize_session=False)
        )
        moved = result.all()
        if not moved:
            logger.warning("No %s payouts among %d requested ids", "/".join(sources), len(ids))
            raise NothingToProcessError(
                f"No {' or '.join(sources)} payouts found",
                offending_ids=ids,
            )

        moved_ids = [row.id for row in moved]
        moved_set = set(moved_ids)
        excluded = [i for i in ids if i not in moved_set]
        total_amount = sum_amounts([row.net_amount for row in moved])
        batch_id = uuid4()

        await self.events.record(
            ComplianceEventRecord(
                entity_type="payroll",
                entity_id=batch_id,
                event_type=event_type,
                event_category=EventCategory.FINANCIAL,
                actor_id=caller.user_id,
                actor_role=Role.ADMIN.value,
                realm_context=self.realm_context,
                description=f"{verb} {len(moved_ids)} payouts",
                payload={
                    "batch_id": batch_id,
                    "payout_ids": moved_ids,
                    "excluded_ids": excluded,
                    "total_amount": total_amount,
                    "failure_reason": failure_reason,
                },
                financial_amount=total_amount,
                legal_entity=self.legal_entity,
            ),
            context,
        )

        logger.info(
            "%s %d payouts (%s) in batch %s, %d excluded",
            verb,
            len(moved_ids),
            total_amount,
            batch_id,
            len(excluded),
        )

        reloaded = await self.session.execute(
            select(Payout)
            .where(Payout.id.in_(moved_ids))
            .order_by(Payout.created_at.desc())
            .execution_options(populate_existing=True)
        )
        payouts = list(reloaded.scalars().all())
        return BatchResult(
            batch_id=batch_id,
            payouts=payouts,
            processed_count=len(payouts),
            total_amount=total_amount,
            excluded_ids=excluded,
        )
