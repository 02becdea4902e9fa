"""Time log and payout state machines with transition validation."""

from __future__ import annotations

from enum import Enum

from nexus_compliance.errors import StateConflictError


class TimeLogStatus(str, Enum):
    """Time log submission status values."""

    DRAFT = "draft"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"


class ReviewDecision(str, Enum):
    """Decisions a reviewer may apply to a submitted time log."""

    APPROVED = "approved"
    REJECTED = "rejected"
    NEEDS_CORRECTION = "needs_correction"

    @property
    def resulting_status(self) -> TimeLogStatus:
        """Status the time log lands in after this decision.

        A correction request lands in ``rejected`` so the talent can edit
        and resubmit; the audit row keeps the literal decision.
        """
        if self is ReviewDecision.APPROVED:
            return TimeLogStatus.APPROVED
        return TimeLogStatus.REJECTED

    @property
    def audit_type(self) -> str:
        """Audit type recorded alongside the decision."""
        return {
            ReviewDecision.APPROVED: "approval",
            ReviewDecision.REJECTED: "rejection",
            ReviewDecision.NEEDS_CORRECTION: "correction",
        }[self]


class PayoutStatus(str, Enum):
    """Payout status values."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class InvalidTransitionError(StateConflictError):
    """Raised when an invalid state transition is attempted."""

    code = "INVALID_TRANSITION"

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = _value(from_status)
        self.to_status = _value(to_status)
        self.reason = reason
        msg = f"Invalid transition from '{_value(from_status)}' to '{_value(to_status)}'"
        if reason:
            msg += f": {reason}"
        super().__init__(
            msg,
            current_status=_value(from_status),
            requested_status=_value(to_status),
        )


class TimeLogStateMachine:
    """State machine for time log submission status.

    Allowed transitions:
    - draft → submitted
    - rejected → submitted (resubmission)
    - submitted → approved
    - submitted → rejected
    """

    VALID_TRANSITIONS: dict[TimeLogStatus, frozenset[TimeLogStatus]] = {
        TimeLogStatus.DRAFT: frozenset({TimeLogStatus.SUBMITTED}),
        TimeLogStatus.SUBMITTED: frozenset({TimeLogStatus.APPROVED, TimeLogStatus.REJECTED}),
        TimeLogStatus.APPROVED: frozenset(),  # Terminal, feeds payroll
        TimeLogStatus.REJECTED: frozenset({TimeLogStatus.SUBMITTED}),
    }

    # Statuses where the talent may edit the record
    EDITABLE = frozenset({TimeLogStatus.DRAFT, TimeLogStatus.REJECTED})

    # Statuses where the talent may delete the record
    DELETABLE = frozenset({TimeLogStatus.DRAFT})

    # Statuses from which a batch submission is accepted
    SUBMITTABLE = frozenset(
        s for s, targets in VALID_TRANSITIONS.items() if TimeLogStatus.SUBMITTED in targets
    )

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        try:
            source = TimeLogStatus(from_status)
            target = TimeLogStatus(to_status)
        except ValueError:
            return False
        return target in cls.VALID_TRANSITIONS[source]

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(from_status, to_status)

    @classmethod
    def can_edit(cls, status: str) -> bool:
        """Check if the time log fields may be modified."""
        return _coerce(TimeLogStatus, status) in cls.EDITABLE

    @classmethod
    def can_delete(cls, status: str) -> bool:
        """Check if the time log may be deleted."""
        return _coerce(TimeLogStatus, status) in cls.DELETABLE

    @classmethod
    def can_submit(cls, status: str) -> bool:
        """Check if the time log may be included in a submission batch."""
        return _coerce(TimeLogStatus, status) in cls.SUBMITTABLE

    @classmethod
    def get_next_statuses(cls, current_status: str) -> set[str]:
        """Get the set of valid next statuses from current status."""
        return {s.value for s in cls.VALID_TRANSITIONS.get(TimeLogStatus(current_status), ())}


class PayoutStateMachine:
    """State machine for payouts. Transitions are monotonic.

    Allowed transitions:
    - pending → processing
    - processing → completed
    - processing → failed
    """

    VALID_TRANSITIONS: dict[PayoutStatus, frozenset[PayoutStatus]] = {
        PayoutStatus.PENDING: frozenset({PayoutStatus.PROCESSING}),
        PayoutStatus.PROCESSING: frozenset({PayoutStatus.COMPLETED, PayoutStatus.FAILED}),
        PayoutStatus.COMPLETED: frozenset(),
        PayoutStatus.FAILED: frozenset(),
    }

    TERMINAL = frozenset({PayoutStatus.COMPLETED, PayoutStatus.FAILED})

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        try:
            source = PayoutStatus(from_status)
            target = PayoutStatus(to_status)
        except ValueError:
            return False
        return target in cls.VALID_TRANSITIONS[source]

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(from_status, to_status)

    @classmethod
    def sources_for(cls, to_status: PayoutStatus) -> frozenset[PayoutStatus]:
        """Statuses from which ``to_status`` is reachable in one step."""
        return frozenset(s for s, targets in cls.VALID_TRANSITIONS.items() if to_status in targets)

    @classmethod
    def is_terminal(cls, status: str) -> bool:
        """Check if no further transitions are possible."""
        return _coerce(PayoutStatus, status) in cls.TERMINAL


def _value(status: str) -> str:
    return status.value if isinstance(status, Enum) else status


def _coerce(enum_type: type[Enum], status: str) -> Enum | None:
    try:
        return enum_type(status)
    except ValueError:
        return None
