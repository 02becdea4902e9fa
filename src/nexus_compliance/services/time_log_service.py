"""Time log service - lifecycle of reported work.

Operations:
- create/list/get/update/delete: talent-owned record maintenance
- submit_batch: draft/rejected → submitted, all-or-nothing
- decide: submitted → approved/rejected by the contract client or an admin

Every status change is a conditional UPDATE on the expected source status,
so a concurrent edit or decision can never be overwritten silently. Callers
run each operation inside one unit of work and roll back on any error.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from datetime import date, time
from decimal import Decimal
from typing import Any, Mapping, Sequence
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from nexus_compliance.errors import NotFoundError, StateConflictError, ValidationError
from nexus_compliance.models import Contract, TalentProfile, TimeLog, utcnow
from nexus_compliance.services.audit_trail import TimeLogAuditTrail
from nexus_compliance.services.authorization import (
    AuthorizationGuard,
    Caller,
    RecordParties,
    Role,
)
from nexus_compliance.services.compliance_log import (
    AuditFailurePolicy,
    ComplianceEventLog,
    ComplianceEventRecord,
    EventCategory,
    RequestContext,
)
from nexus_compliance.services.state_machine import (
    InvalidTransitionError,
    ReviewDecision,
    TimeLogStateMachine,
    TimeLogStatus,
)

logger = logging.getLogger(__name__)

AZ_STATE = "AZ"
MAX_HOURS_PER_LOG = Decimal("24")
LOCATION_TYPES = frozenset({"remote", "onsite", "hybrid"})


def compute_az_eligible_hours(
    hours_worked: Decimal,
    location_state: str | None,
    talent_az_eligible: bool,
) -> Decimal:
    """Hours that count toward Arizona reporting.

    Non-zero only for work located in AZ by an AZ-eligible talent, and
    never more than the hours worked.
    """
    if location_state == AZ_STATE and talent_az_eligible and hours_worked > 0:
        return hours_worked
    return Decimal("0")


@dataclass(frozen=True)
class TimeLogInput:
    """Validated fields for a new time log."""

    log_date: date
    hours_worked: Decimal
    contract_id: UUID | None = None
    milestone_id: UUID | None = None
    start_time: time | None = None
    end_time: time | None = None
    description: str | None = None
    task_category: str | None = None
    location_type: str = "remote"
    location_state: str | None = None
    location_city: str | None = None
    location_latitude: Decimal | None = None
    location_longitude: Decimal | None = None
    billable: bool = True


# Fields the owner may change while the log is editable; the contract is fixed at creation
EDITABLE_FIELDS = frozenset(f.name for f in fields(TimeLogInput)) - {"contract_id"}
REQUIRED_FIELDS = frozenset({"log_date", "hours_worked", "location_type", "billable"})


@dataclass(frozen=True)
class SubmitResult:
    """Result of a batch submission."""

    time_logs: list[TimeLog]
    submitted_count: int


class TimeLogService:
    """Service for time log maintenance and review transitions."""

    def __init__(
        self,
        session: AsyncSession,
        *,
        realm_context: str = "nexus",
        legal_entity: str | None = None,
    ):
        self.session = session
        self.realm_context = realm_context
        self.audit_trail = TimeLogAuditTrail(session)
        self.events = ComplianceEventLog(session, legal_entity=legal_entity)

    # ------------------------------------------------------------------
    # Record maintenance
    # ------------------------------------------------------------------

    async def get_talent_profile(self, caller: Caller) -> TalentProfile:
        """Load the caller's talent profile; time log work requires one."""
        profile = await self.session.scalar(
            select(TalentProfile).where(TalentProfile.user_id == caller.user_id)
        )
        if profile is None:
            raise NotFoundError(
                "talent_profile",
                caller.user_id,
                message="Talent profile not found. Create one first.",
            )
        return profile

    async def list_time_logs(
        self,
        caller: Caller,
        *,
        contract_id: UUID | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
        status: TimeLogStatus | None = None,
    ) -> list[TimeLog]:
        """List the caller's own time logs, newest log date first."""
        profile = await self.get_talent_profile(caller)
        query = select(TimeLog).where(TimeLog.talent_profile_id == profile.id)
        if contract_id:
            query = query.where(TimeLog.contract_id == contract_id)
        if start_date:
            query = query.where(TimeLog.log_date >= start_date)
        if end_date:
            query = query.where(TimeLog.log_date <= end_date)
        if status:
            query = query.where(TimeLog.submission_status == TimeLogStatus(status).value)

        result = await self.session.execute(
            query.order_by(TimeLog.log_date.desc(), TimeLog.created_at.desc())
        )
        return list(result.scalars().all())

    async def get_time_log(self, caller: Caller, time_log_id: UUID) -> TimeLog:
        """Get one of the caller's own time logs."""
        profile = await self.get_talent_profile(caller)
        return await self._load_owned(profile, time_log_id)

    async def create_time_log(
        self,
        caller: Caller,
        data: TimeLogInput,
        context: RequestContext,
    ) -> TimeLog:
        """Create a draft time log owned by the caller."""
        profile = await self.get_talent_profile(caller)
        _validate_fields(data.hours_worked, data.location_type)

        if data.contract_id is not None:
            contract = await self.session.get(Contract, data.contract_id)
            if contract is None:
                raise NotFoundError("contract", data.contract_id)
            AuthorizationGuard.require(
                caller,
                RecordParties(talent_user_id=contract.creator_id),
                (Role.TALENT,),
                "log time against contract",
            )

        time_log = TimeLog(
            talent_profile_id=profile.id,
            contract_id=data.contract_id,
            milestone_id=data.milestone_id,
            log_date=data.log_date,
            start_time=data.start_time,
            end_time=data.end_time,
            hours_worked=data.hours_worked,
            description=data.description,
            task_category=data.task_category,
            location_type=data.location_type,
            location_state=data.location_state,
            location_city=data.location_city,
            location_latitude=data.location_latitude,
            location_longitude=data.location_longitude,
            location_verified=_location_verified(
                data.location_latitude, data.location_longitude
            ),
            az_eligible_hours=compute_az_eligible_hours(
                data.hours_worked, data.location_state, profile.az_eligible
            ),
            billable=data.billable,
            submission_status=TimeLogStatus.DRAFT.value,
        )
        self.session.add(time_log)
        await self.session.flush()

        await self._record_edit(caller, time_log.id, "time_log_created", context)
        return time_log

    async def update_time_log(
        self,
        caller: Caller,
        time_log_id: UUID,
        changes: Mapping[str, Any],
        context: RequestContext,
    ) -> TimeLog:
        """Edit a draft or rejected time log, recomputing AZ-eligible hours."""
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError(
                "Unknown or read-only time log fields",
                fields=sorted(unknown),
            )
        cleared = sorted(f for f in REQUIRED_FIELDS & set(changes) if changes[f] is None)
        if cleared:
            raise ValidationError("Required time log fields cannot be null", fields=cleared)

        profile = await self.get_talent_profile(caller)
        existing = await self._load_owned(profile, time_log_id)
        if not TimeLogStateMachine.can_edit(existing.submission_status):
            raise StateConflictError(
                "Can only edit draft or rejected time logs",
                offending_ids=[time_log_id],
                current_status=existing.submission_status,
            )

        hours = changes.get("hours_worked", existing.hours_worked)
        location_type = changes.get("location_type", existing.location_type)
        _validate_fields(hours, location_type)

        values = dict(changes)
        values["az_eligible_hours"] = compute_az_eligible_hours(
            hours,
            changes.get("location_state", existing.location_state),
            profile.az_eligible,
        )
        values["location_verified"] = _location_verified(
            changes.get("location_latitude", existing.location_latitude),
            changes.get("location_longitude", existing.location_longitude),
        )
        values["updated_at"] = utcnow()

        result = await self.session.execute(
            update(TimeLog)
            .where(
                TimeLog.id == time_log_id,
                TimeLog.talent_profile_id == profile.id,
                TimeLog.submission_status.in_([s.value for s in TimeLogStateMachine.EDITABLE]),
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise StateConflictError(
                "Time log changed status while being edited",
                offending_ids=[time_log_id],
            )

        await self._record_edit(caller, time_log_id, "time_log_updated", context)
        return await self._reload_one(time_log_id)

    async def delete_time_log(
        self,
        caller: Caller,
        time_log_id: UUID,
        context: RequestContext,
    ) -> None:
        """Delete a draft time log."""
        profile = await self.get_talent_profile(caller)
        existing = await self._load_owned(profile, time_log_id)
        if not TimeLogStateMachine.can_delete(existing.submission_status):
            raise StateConflictError(
                "Can only delete draft time logs",
                offending_ids=[time_log_id],
                current_status=existing.submission_status,
            )

        result = await self.session.execute(
            delete(TimeLog)
            .where(
                TimeLog.id == time_log_id,
                TimeLog.talent_profile_id == profile.id,
                TimeLog.submission_status == TimeLogStatus.DRAFT.value,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise StateConflictError(
                "Time log changed status while being deleted",
                offending_ids=[time_log_id],
            )
        self.session.expunge(existing)

        await self._record_edit(caller, time_log_id, "time_log_deleted", context)

    # ------------------------------------------------------------------
    # Review transitions
    # ------------------------------------------------------------------

    async def submit_batch(
        self,
        caller: Caller,
        time_log_ids: Sequence[UUID],
        context: RequestContext,
    ) -> SubmitResult:
        """Submit draft/rejected time logs for review.

        All-or-nothing: if any id is unknown, not owned by the caller, or not
        in a submittable status, nothing changes and the offending ids are
        reported.
        """
        ids = list(dict.fromkeys(time_log_ids))
        if not ids:
            raise ValidationError("time_log_ids array required")

        profile = await self.get_talent_profile(caller)

        result = await self.session.execute(
            select(TimeLog.id, TimeLog.talent_profile_id, TimeLog.submission_status).where(
                TimeLog.id.in_(ids)
            )
        )
        found = {row.id: row for row in result.all()}

        not_owned = [i for i in ids if i not in found or found[i].talent_profile_id != profile.id]
        wrong_status = [
            i
            for i in ids
            if i in found
            and found[i].talent_profile_id == profile.id
            and not TimeLogStateMachine.can_submit(found[i].submission_status)
        ]
        if not_owned or wrong_status:
            logger.warning(
                "Rejected submission batch for talent %s: %d not owned, %d not submittable",
                profile.id,
                len(not_owned),
                len(wrong_status),
            )
            raise StateConflictError(
                "Some time logs cannot be submitted",
                offending_ids=not_owned + wrong_status,
                not_owned_ids=not_owned,
                invalid_status_ids=wrong_status,
            )

        submitted_at = utcnow()
        update_result = await self.session.execute(
            update(TimeLog)
            .where(
                TimeLog.id.in_(ids),
                TimeLog.talent_profile_id == profile.id,
                TimeLog.submission_status.in_(
                    [s.value for s in TimeLogStateMachine.SUBMITTABLE]
                ),
            )
            .values(
                submission_status=TimeLogStatus.SUBMITTED.value,
                submitted_at=submitted_at,
                updated_at=submitted_at,
            )
            .execution_options(synchronize_session=False)
        )
        if update_result.rowcount != len(ids):
            raise StateConflictError(
                "Time logs changed status during submission",
                offending_ids=ids,
            )

        await self.audit_trail.append_many(
            time_log_ids=ids,
            decision="submitted",
            audit_type="review",
            notes="Time log submitted for review",
            context=context,
        )
        await self.events.record(
            ComplianceEventRecord(
                entity_type="time_log",
                entity_id=profile.id,
                event_type="batch_submitted",
                event_category=EventCategory.COMPLIANCE,
                actor_id=caller.user_id,
                actor_role=Role.TALENT.value,
                realm_context=self.realm_context,
                description=f"Submitted {len(ids)} time logs for review",
                payload={"time_log_ids": ids},
            ),
            context,
        )

        logger.info("Talent %s submitted %d time logs", profile.id, len(ids))
        time_logs = await self._reload(ids)
        return SubmitResult(time_logs=time_logs, submitted_count=len(time_logs))

    async def decide(
        self,
        caller: Caller,
        time_log_id: UUID,
        decision: str,
        notes: str | None,
        context: RequestContext,
    ) -> TimeLog:
        """Apply a review decision to a submitted time log.

        Raises:
            ValidationError: decision is not a known value
            NotFoundError: time log does not exist
            AuthorizationError: caller is neither contract client nor admin
            StateConflictError: time log is not in submitted status
        """
        try:
            review = ReviewDecision(decision)
        except ValueError:
            raise ValidationError(
                "Invalid decision. Must be: approved, rejected, or needs_correction",
                decision=decision,
            ) from None

        row = (
            await self.session.execute(
                select(TimeLog.submission_status, Contract.client_id)
                .outerjoin(Contract, Contract.id == TimeLog.contract_id)
                .where(TimeLog.id == time_log_id)
            )
        ).first()
        if row is None:
            raise NotFoundError("time_log", time_log_id)

        role = AuthorizationGuard.require(
            caller,
            RecordParties(client_id=row.client_id),
            (Role.CLIENT, Role.ADMIN),
            "review time log",
        )

        target = review.resulting_status
        if row.submission_status != TimeLogStatus.SUBMITTED.value:
            raise InvalidTransitionError(
                row.submission_status,
                target,
                reason="Time log must be in submitted status to approve/reject",
            )

        approved = review is ReviewDecision.APPROVED
        decided_at = utcnow()
        result = await self.session.execute(
            update(TimeLog)
            .where(
                TimeLog.id == time_log_id,
                TimeLog.submission_status == TimeLogStatus.SUBMITTED.value,
            )
            .values(
                submission_status=target.value,
                approved_at=decided_at if approved else None,
                approved_by=caller.user_id if approved else None,
                updated_at=decided_at,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise StateConflictError(
                "Time log was decided concurrently",
                offending_ids=[time_log_id],
            )

        await self.audit_trail.append(
            time_log_id=time_log_id,
            reviewer_id=caller.user_id,
            decision=review.value,
            audit_type=review.audit_type,
            notes=notes,
            context=context,
        )
        await self.events.record(
            ComplianceEventRecord(
                entity_type="time_log",
                entity_id=time_log_id,
                event_type=f"time_log_{review.value}",
                event_category=EventCategory.COMPLIANCE,
                actor_id=caller.user_id,
                actor_role=role.value,
                realm_context=self.realm_context,
                description=f"Time log {review.value} by {role.value}",
                payload={
                    "decision": review.value,
                    "notes": notes,
                    "resulting_status": target.value,
                },
            ),
            context,
        )

        logger.info("Time log %s %s by %s %s", time_log_id, review.value, role.value, caller.user_id)
        return await self._reload_one(time_log_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _load_owned(self, profile: TalentProfile, time_log_id: UUID) -> TimeLog:
        time_log = await self.session.scalar(
            select(TimeLog).where(
                TimeLog.id == time_log_id,
                TimeLog.talent_profile_id == profile.id,
            )
        )
        if time_log is None:
            raise NotFoundError("time_log", time_log_id)
        return time_log

    async def _reload(self, ids: Sequence[UUID]) -> list[TimeLog]:
        result = await self.session.execute(
            select(TimeLog)
            .where(TimeLog.id.in_(ids))
            .order_by(TimeLog.log_date.desc())
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def _reload_one(self, time_log_id: UUID) -> TimeLog:
        (time_log,) = await self._reload([time_log_id])
        return time_log

    async def _record_edit(
        self,
        caller: Caller,
        time_log_id: UUID,
        event_type: str,
        context: RequestContext,
    ) -> None:
        await self.events.record(
            ComplianceEventRecord(
                entity_type="time_log",
                entity_id=time_log_id,
                event_type=event_type,
                event_category=EventCategory.DATA_CHANGE,
                actor_id=caller.user_id,
                actor_role=Role.TALENT.value,
                realm_context=self.realm_context,
                description=event_type.replace("_", " ").capitalize(),
            ),
            context,
            policy=AuditFailurePolicy.BEST_EFFORT,
        )


def _validate_fields(hours_worked: Decimal | None, location_type: str | None) -> None:
    if hours_worked is None or hours_worked <= 0 or hours_worked > MAX_HOURS_PER_LOG:
        raise ValidationError(
            "hours_worked must be greater than 0 and at most 24",
            hours_worked=str(hours_worked),
        )
    if location_type not in LOCATION_TYPES:
        raise ValidationError(
            "location_type must be one of: remote, onsite, hybrid",
            location_type=location_type,
        )


def _location_verified(latitude: Decimal | None, longitude: Decimal | None) -> bool:
    return latitude is not None and longitude is not None
