"""Tests for the time log service: record maintenance and review workflow."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy.exc import SQLAlchemyError

from nexus_compliance.errors import (
    AuthorizationError,
    NotFoundError,
    StateConflictError,
    ValidationError,
)
from nexus_compliance.services.audit_trail import TimeLogAuditTrail
from nexus_compliance.services.authorization import Caller
from nexus_compliance.services.compliance_log import ComplianceEventLog
from nexus_compliance.services.state_machine import InvalidTransitionError
from nexus_compliance.services.time_log_service import (
    TimeLogInput,
    TimeLogService,
    compute_az_eligible_hours,
)


@pytest.fixture
def service(session) -> TimeLogService:
    return TimeLogService(session, realm_context="nexus", legal_entity="for_profit")


@pytest.fixture
async def other_talent(make_user, make_talent) -> Caller:
    user = await make_user("creator")
    profile = await make_talent(user, first_name="Grace", last_name="Hopper")
    return Caller(user_id=user.id, user_type="creator", talent_profile_id=profile.id)


def _input(**overrides) -> TimeLogInput:
    values = dict(
        log_date=date(2025, 3, 14),
        hours_worked=Decimal("8.00"),
        location_type="onsite",
        location_state="AZ",
    )
    values.update(overrides)
    return TimeLogInput(**values)


class TestComputeAzEligibleHours:
    """Test the AZ-eligible hours rule."""

    def test_az_location_and_eligible_talent(self):
        assert compute_az_eligible_hours(Decimal("8"), "AZ", True) == Decimal("8")

    def test_other_state(self):
        assert compute_az_eligible_hours(Decimal("8"), "CA", True) == Decimal("0")

    def test_ineligible_talent(self):
        assert compute_az_eligible_hours(Decimal("8"), "AZ", False) == Decimal("0")

    def test_no_location(self):
        assert compute_az_eligible_hours(Decimal("8"), None, True) == Decimal("0")


class TestTimeLogMaintenance:
    """Test create, update and delete of talent-owned time logs."""

    async def test_create_draft_with_az_hours(self, service, session, talent_caller, context):
        time_log = await service.create_time_log(talent_caller, _input(), context)

        assert time_log.submission_status == "draft"
        assert time_log.az_eligible_hours == Decimal("8.00")
        assert time_log.billable is True
        assert time_log.location_verified is False
        assert await ComplianceEventLog(session).count("time_log_created") == 1

    async def test_create_defaults_to_remote(self, service, talent_caller, context):
        time_log = await service.create_time_log(
            talent_caller,
            TimeLogInput(log_date=date(2025, 3, 14), hours_worked=Decimal("2.5")),
            context,
        )

        assert time_log.location_type == "remote"
        assert time_log.az_eligible_hours == Decimal("0")

    async def test_create_marks_location_verified_with_coordinates(
        self, service, talent_caller, context
    ):
        time_log = await service.create_time_log(
            talent_caller,
            _input(location_latitude=Decimal("33.448400"), location_longitude=Decimal("-112.074000")),
            context,
        )

        assert time_log.location_verified is True

    async def test_create_requires_talent_profile(self, service, client_caller, context):
        with pytest.raises(NotFoundError) as exc_info:
            await service.create_time_log(client_caller, _input(), context)

        assert exc_info.value.message == "Talent profile not found. Create one first."

    async def test_create_against_foreign_contract_is_forbidden(
        self, service, other_talent, contract, context
    ):
        with pytest.raises(AuthorizationError):
            await service.create_time_log(other_talent, _input(contract_id=contract.id), context)

    async def test_create_against_unknown_contract(self, service, talent_caller, context):
        with pytest.raises(NotFoundError):
            await service.create_time_log(talent_caller, _input(contract_id=uuid4()), context)

    @pytest.mark.parametrize(
        "overrides",
        [
            {"hours_worked": Decimal("0")},
            {"hours_worked": Decimal("24.01")},
            {"hours_worked": Decimal("-1")},
            {"location_type": "moon"},
        ],
    )
    async def test_create_validates_fields(self, service, talent_caller, context, overrides):
        with pytest.raises(ValidationError):
            await service.create_time_log(talent_caller, _input(**overrides), context)

    async def test_list_filters_by_status_and_date(
        self, service, talent_caller, talent_profile, make_time_log
    ):
        await make_time_log(talent_profile, status="draft", log_date=date(2025, 1, 10))
        await make_time_log(talent_profile, status="submitted", log_date=date(2025, 2, 10))
        await make_time_log(talent_profile, status="draft", log_date=date(2025, 3, 10))

        drafts = await service.list_time_logs(talent_caller, status="draft")
        february_on = await service.list_time_logs(talent_caller, start_date=date(2025, 2, 1))

        assert [t.log_date for t in drafts] == [date(2025, 3, 10), date(2025, 1, 10)]
        assert len(february_on) == 2

    async def test_list_only_returns_own_logs(
        self, service, other_talent, talent_profile, make_time_log
    ):
        await make_time_log(talent_profile)

        assert await service.list_time_logs(other_talent) == []

    async def test_get_foreign_log_is_not_found(
        self, service, other_talent, talent_profile, make_time_log
    ):
        time_log = await make_time_log(talent_profile)

        with pytest.raises(NotFoundError):
            await service.get_time_log(other_talent, time_log.id)

    async def test_update_recomputes_az_hours(
        self, service, talent_caller, talent_profile, make_time_log, context
    ):
        time_log = await make_time_log(talent_profile, az_hours="8.00")

        updated = await service.update_time_log(
            talent_caller, time_log.id, {"location_state": "CA"}, context
        )

        assert updated.location_state == "CA"
        assert updated.az_eligible_hours == Decimal("0")

    async def test_update_rejected_keeps_status(
        self, service, talent_caller, talent_profile, make_time_log, context
    ):
        time_log = await make_time_log(talent_profile, status="rejected")

        updated = await service.update_time_log(
            talent_caller, time_log.id, {"hours_worked": Decimal("6.00")}, context
        )

        assert updated.submission_status == "rejected"
        assert updated.hours_worked == Decimal("6.00")
        assert updated.az_eligible_hours == Decimal("6.00")

    @pytest.mark.parametrize("status", ["submitted", "approved"])
    async def test_update_outside_editable_status(
        self, service, session, talent_caller, talent_profile, make_time_log, context, status
    ):
        time_log = await make_time_log(talent_profile, status=status)

        with pytest.raises(StateConflictError) as exc_info:
            await service.update_time_log(
                talent_caller, time_log.id, {"description": "late edit"}, context
            )

        assert exc_info.value.offending_ids == [time_log.id]
        await session.refresh(time_log)
        assert time_log.description is None

    @pytest.mark.parametrize("field", ["submission_status", "approved_by", "contract_id"])
    async def test_update_rejects_read_only_fields(
        self, service, talent_caller, talent_profile, make_time_log, context, field
    ):
        time_log = await make_time_log(talent_profile)

        with pytest.raises(ValidationError):
            await service.update_time_log(talent_caller, time_log.id, {field: None}, context)

    @pytest.mark.parametrize("field", ["log_date", "hours_worked", "location_type", "billable"])
    async def test_update_rejects_null_required_fields(
        self, service, session, talent_caller, talent_profile, make_time_log, context, field
    ):
        time_log = await make_time_log(talent_profile)

        with pytest.raises(ValidationError) as exc_info:
            await service.update_time_log(talent_caller, time_log.id, {field: None}, context)

        assert exc_info.value.details["fields"] == [field]
        await session.refresh(time_log)
        assert time_log.log_date is not None
        assert time_log.billable is True

    async def test_update_clears_optional_field(
        self, service, talent_caller, talent_profile, make_time_log, context
    ):
        time_log = await make_time_log(talent_profile)

        updated = await service.update_time_log(
            talent_caller, time_log.id, {"description": None}, context
        )

        assert updated.description is None

    async def test_delete_draft(
        self, service, session, talent_caller, talent_profile, make_time_log, context
    ):
        time_log = await make_time_log(talent_profile)

        await service.delete_time_log(talent_caller, time_log.id, context)

        assert await service.list_time_logs(talent_caller) == []
        assert await ComplianceEventLog(session).count("time_log_deleted") == 1

    @pytest.mark.parametrize("status", ["submitted", "approved", "rejected"])
    async def test_delete_outside_draft(
        self, service, talent_caller, talent_profile, make_time_log, context, status
    ):
        time_log = await make_time_log(talent_profile, status=status)

        with pytest.raises(StateConflictError):
            await service.delete_time_log(talent_caller, time_log.id, context)

        assert len(await service.list_time_logs(talent_caller)) == 1


class TestSubmitBatch:
    """Test all-or-nothing batch submission."""

    async def test_az_draft_is_submitted(self, service, session, talent_caller, context):
        time_log = await service.create_time_log(talent_caller, _input(), context)

        result = await service.submit_batch(talent_caller, [time_log.id], context)

        assert result.submitted_count == 1
        (submitted,) = result.time_logs
        assert submitted.submission_status == "submitted"
        assert submitted.submitted_at is not None
        assert submitted.az_eligible_hours == Decimal("8.00")

        (audit,) = await TimeLogAuditTrail(session).history(time_log.id)
        assert audit.decision == "submitted"
        assert audit.audit_type == "review"
        assert audit.ip_address == "203.0.113.7"
        assert await ComplianceEventLog(session).count("batch_submitted") == 1

    async def test_rejected_logs_can_be_resubmitted(
        self, service, talent_caller, talent_profile, make_time_log, context
    ):
        time_log = await make_time_log(talent_profile, status="rejected")

        result = await service.submit_batch(talent_caller, [time_log.id], context)

        assert result.time_logs[0].submission_status == "submitted"

    async def test_duplicate_ids_are_submitted_once(
        self, service, session, talent_caller, talent_profile, make_time_log, context
    ):
        time_log = await make_time_log(talent_profile)

        result = await service.submit_batch(talent_caller, [time_log.id, time_log.id], context)

        assert result.submitted_count == 1
        assert await TimeLogAuditTrail(session).count(time_log.id) == 1

    async def test_all_or_nothing(
        self, service, session, talent_caller, talent_profile, make_time_log, context
    ):
        draft = await make_time_log(talent_profile)
        approved = await make_time_log(talent_profile, status="approved")

        with pytest.raises(StateConflictError) as exc_info:
            await service.submit_batch(talent_caller, [draft.id, approved.id], context)

        assert exc_info.value.offending_ids == [approved.id]
        assert exc_info.value.details["invalid_status_ids"] == [approved.id]
        await session.refresh(draft)
        assert draft.submission_status == "draft"
        assert await TimeLogAuditTrail(session).count() == 0
        assert await ComplianceEventLog(session).count() == 0

    async def test_foreign_and_unknown_ids_are_reported(
        self, service, talent_caller, other_talent, talent_profile, make_time_log, context
    ):
        mine = await make_time_log(talent_profile)
        unknown = uuid4()

        with pytest.raises(StateConflictError) as exc_info:
            await service.submit_batch(other_talent, [mine.id, unknown], context)

        assert exc_info.value.details["not_owned_ids"] == [mine.id, unknown]

    async def test_empty_batch(self, service, talent_caller, context):
        with pytest.raises(ValidationError):
            await service.submit_batch(talent_caller, [], context)


class TestDecide:
    """Test review decisions on submitted time logs."""

    async def test_client_approves(
        self, service, session, client_caller, talent_profile, contract, make_time_log, context
    ):
        time_log = await make_time_log(talent_profile, contract=contract, status="submitted")

        decided = await service.decide(client_caller, time_log.id, "approved", "Looks good", context)

        assert decided.submission_status == "approved"
        assert decided.approved_by == client_caller.user_id
        assert decided.approved_at is not None

        (audit,) = await TimeLogAuditTrail(session).history(time_log.id)
        assert (audit.decision, audit.audit_type, audit.notes) == ("approved", "approval", "Looks good")
        assert audit.reviewer_id == client_caller.user_id

        (event,) = await ComplianceEventLog(session).get_by_entity("time_log", time_log.id)
        assert event.event_type == "time_log_approved"
        assert event.actor_role == "client"

    async def test_admin_requests_correction(
        self, service, session, admin_caller, talent_profile, contract, make_time_log, context
    ):
        time_log = await make_time_log(talent_profile, contract=contract, status="submitted")

        decided = await service.decide(
            admin_caller, time_log.id, "needs_correction", "Split by task", context
        )

        assert decided.submission_status == "rejected"
        assert decided.approved_by is None
        assert decided.approved_at is None

        (audit,) = await TimeLogAuditTrail(session).history(time_log.id)
        assert audit.decision == "needs_correction"
        assert audit.audit_type == "correction"

        (event,) = await ComplianceEventLog(session).get_by_entity("time_log", time_log.id)
        assert event.event_type == "time_log_needs_correction"
        assert event.actor_role == "admin"

    async def test_admin_may_decide_without_contract(
        self, service, admin_caller, talent_profile, make_time_log, context
    ):
        time_log = await make_time_log(talent_profile, status="submitted")

        decided = await service.decide(admin_caller, time_log.id, "rejected", None, context)

        assert decided.submission_status == "rejected"

    async def test_decide_on_draft_is_a_conflict(
        self, service, session, client_caller, talent_profile, contract, make_time_log, context
    ):
        time_log = await make_time_log(talent_profile, contract=contract, status="draft")

        with pytest.raises(StateConflictError) as exc_info:
            await service.decide(client_caller, time_log.id, "approved", None, context)

        assert isinstance(exc_info.value, InvalidTransitionError)
        await session.refresh(time_log)
        assert time_log.submission_status == "draft"
        assert await TimeLogAuditTrail(session).count() == 0
        assert await ComplianceEventLog(session).count() == 0

    async def test_unrelated_user_is_forbidden(
        self, service, make_user, talent_profile, contract, make_time_log, context
    ):
        time_log = await make_time_log(talent_profile, contract=contract, status="submitted")
        stranger = await make_user("client")

        with pytest.raises(AuthorizationError):
            await service.decide(
                Caller(user_id=stranger.id, user_type="client"), time_log.id, "approved", None, context
            )

    async def test_talent_cannot_approve_own_log(
        self, service, talent_caller, talent_profile, contract, make_time_log, context
    ):
        time_log = await make_time_log(talent_profile, contract=contract, status="submitted")

        with pytest.raises(AuthorizationError):
            await service.decide(talent_caller, time_log.id, "approved", None, context)

    async def test_invalid_decision(self, service, admin_caller, context):
        with pytest.raises(ValidationError):
            await service.decide(admin_caller, uuid4(), "maybe", None, context)

    async def test_unknown_time_log(self, service, admin_caller, context):
        with pytest.raises(NotFoundError):
            await service.decide(admin_caller, uuid4(), "approved", None, context)


class TestBestEffortEditAudit:
    """Record edits survive a failed compliance event write."""

    async def test_update_commits_despite_event_failure(
        self, service, session, talent_caller, talent_profile, make_time_log, context, monkeypatch
    ):
        time_log = await make_time_log(talent_profile)

        async def failing_write(self, row):
            raise SQLAlchemyError("simulated write failure")

        monkeypatch.setattr(ComplianceEventLog, "_write", failing_write)

        updated = await service.update_time_log(
            talent_caller, time_log.id, {"description": "Site visit"}, context
        )
        await session.commit()

        assert updated.description == "Site visit"
        monkeypatch.undo()
        assert await ComplianceEventLog(session).count() == 0
