"""Typed error hierarchy for the compliance and payment workflow.

Every error carries a machine-readable ``code``, the HTTP status the API layer
maps it to, and structured ``details`` the caller can use to reconcile
(for example the offending ids of a rejected batch).

    NexusComplianceError
    +-- AuthenticationError     401
    +-- AuthorizationError      403
    +-- NotFoundError           404
    +-- ValidationError         422
    +-- StateConflictError      409
    |   +-- NothingToProcessError
    |   +-- InsufficientEscrowError
    +-- PersistenceError        500
"""

from __future__ import annotations

from typing import Any, Iterable
from uuid import UUID


class NexusComplianceError(Exception):
    """Base class for all workflow errors."""

    code: str = "COMPLIANCE_ERROR"
    status_code: int = 500

    def __init__(self, message: str, **details: Any):
        self.message = message
        self.details = details
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for an API error body."""
        body: dict[str, Any] = {"detail": self.message, "code": self.code}
        for key, value in self.details.items():
            body[key] = _jsonable(value)
        return body


class AuthenticationError(NexusComplianceError):
    """Missing or invalid caller credential."""

    code = "UNAUTHENTICATED"
    status_code = 401


class AuthorizationError(NexusComplianceError):
    """Caller is authenticated but lacks the role required for this record."""

    code = "FORBIDDEN"
    status_code = 403


class NotFoundError(NexusComplianceError):
    """Referenced contract, time log, payout or talent profile does not exist."""

    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, entity_type: str, entity_id: Any = None, message: str | None = None):
        self.entity_type = entity_type
        self.entity_id = entity_id
        if message is None:
            message = f"{entity_type.replace('_', ' ').capitalize()} not found"
        super().__init__(message, entity_type=entity_type, entity_id=entity_id)


class ValidationError(NexusComplianceError):
    """Missing or malformed input."""

    code = "VALIDATION_ERROR"
    status_code = 422


class StateConflictError(NexusComplianceError):
    """Current state of one or more records does not permit the transition."""

    code = "STATE_CONFLICT"
    status_code = 409

    def __init__(
        self,
        message: str,
        *,
        offending_ids: Iterable[UUID] = (),
        current_status: str | None = None,
        **details: Any,
    ):
        self.offending_ids = list(offending_ids)
        self.current_status = current_status
        if self.offending_ids:
            details["offending_ids"] = self.offending_ids
        if current_status is not None:
            details["current_status"] = current_status
        super().__init__(message, **details)


class NothingToProcessError(StateConflictError):
    """None of the requested payouts are eligible for the requested transition."""

    code = "NOTHING_TO_PROCESS"


class InsufficientEscrowError(StateConflictError):
    """An escrow debit would drive the balance negative."""

    code = "INSUFFICIENT_ESCROW"


class PersistenceError(NexusComplianceError):
    """Underlying storage operation failed. Not retried."""

    code = "PERSISTENCE_ERROR"
    status_code = 500


def _jsonable(value: Any) -> Any:
    if isinstance(value, (list, tuple, set)):
        return [_jsonable(v) for v in value]
    if isinstance(value, UUID):
        return str(value)
    return value
