"""Compliance workflow services."""

from nexus_compliance.services.authorization import AuthorizationGuard, Caller, RecordParties, Role
from nexus_compliance.services.compliance_log import (
    AuditFailurePolicy,
    ComplianceEventLog,
    ComplianceEventRecord,
    EventCategory,
    RequestContext,
)
from nexus_compliance.services.escrow_ledger import EscrowLedger, FundResult
from nexus_compliance.services.payroll_batch import PayoutFilters, PayrollBatchProcessor
from nexus_compliance.services.state_machine import (
    InvalidTransitionError,
    PayoutStateMachine,
    PayoutStatus,
    ReviewDecision,
    TimeLogStateMachine,
    TimeLogStatus,
)
from nexus_compliance.services.time_log_service import TimeLogInput, TimeLogService

__all__ = [
    "AuthorizationGuard",
    "Caller",
    "RecordParties",
    "Role",
    "AuditFailurePolicy",
    "ComplianceEventLog",
    "ComplianceEventRecord",
    "EventCategory",
    "RequestContext",
    "EscrowLedger",
    "FundResult",
    "PayoutFilters",
    "PayrollBatchProcessor",
    "InvalidTransitionError",
    "PayoutStateMachine",
    "PayoutStatus",
    "ReviewDecision",
    "TimeLogStateMachine",
    "TimeLogStatus",
    "TimeLogInput",
    "TimeLogService",
]
