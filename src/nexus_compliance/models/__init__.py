"""ORM models for the compliance and payment workflow."""

from nexus_compliance.models.base import Base, TimestampMixin, UpdatedAtMixin, utcnow
from nexus_compliance.models.compliance import ComplianceEvent
from nexus_compliance.models.contract import Contract
from nexus_compliance.models.escrow import EscrowRecord
from nexus_compliance.models.payout import Payout
from nexus_compliance.models.profile import TalentProfile, UserProfile
from nexus_compliance.models.time_log import TimeLog, TimeLogAudit

__all__ = [
    "Base",
    "TimestampMixin",
    "UpdatedAtMixin",
    "utcnow",
    "ComplianceEvent",
    "Contract",
    "EscrowRecord",
    "Payout",
    "TalentProfile",
    "UserProfile",
    "TimeLog",
    "TimeLogAudit",
]
