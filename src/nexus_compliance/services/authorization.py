"""Role resolution and permission checks for workflow records.

The guard is pure: it never touches storage. Callers load the record's
parties first, ask the guard, and only then mutate anything.

Role resolution order for a caller relative to a record:
1. talent  - the caller owns the record (talent profile or contract creator)
2. client  - the caller is the client on the associated contract
3. admin   - the caller's user profile has the admin account type
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable
from uuid import UUID

from nexus_compliance.errors import AuthorizationError

logger = logging.getLogger(__name__)


class Role(str, Enum):
    """Roles a caller can hold relative to a record."""

    TALENT = "talent"
    CLIENT = "client"
    ADMIN = "admin"


RESOLUTION_ORDER: tuple[Role, ...] = (Role.TALENT, Role.CLIENT, Role.ADMIN)


@dataclass(frozen=True)
class Caller:
    """Authenticated caller identity with its profile linkage."""

    user_id: UUID
    user_type: str = "user"
    talent_profile_id: UUID | None = None

    @property
    def is_admin(self) -> bool:
        return self.user_type == "admin"


@dataclass(frozen=True)
class RecordParties:
    """The parties attached to a record, as far as authorization cares."""

    talent_profile_id: UUID | None = None
    talent_user_id: UUID | None = None
    client_id: UUID | None = None


@dataclass(frozen=True)
class AuthorizationDecision:
    """Outcome of a permission check."""

    allowed: bool
    role: Role | None
    resolved_roles: tuple[Role, ...]

    def __bool__(self) -> bool:
        return self.allowed


class AuthorizationGuard:
    """Pure permission checks: (caller, record, required roles) -> decision."""

    @staticmethod
    def resolve_roles(caller: Caller, parties: RecordParties) -> tuple[Role, ...]:
        """Return every role the caller holds for the record, in resolution order."""
        roles: list[Role] = []

        owns_profile = (
            parties.talent_profile_id is not None
            and caller.talent_profile_id == parties.talent_profile_id
        )
        owns_as_user = (
            parties.talent_user_id is not None and caller.user_id == parties.talent_user_id
        )
        if owns_profile or owns_as_user:
            roles.append(Role.TALENT)

        if parties.client_id is not None and caller.user_id == parties.client_id:
            roles.append(Role.CLIENT)

        if caller.is_admin:
            roles.append(Role.ADMIN)

        return tuple(roles)

    @classmethod
    def check(
        cls,
        caller: Caller,
        parties: RecordParties,
        required: Iterable[Role],
    ) -> AuthorizationDecision:
        """Check whether the caller holds any of the required roles.

        The granting role is the first one in resolution order that is also
        required.
        """
        required_set = frozenset(required)
        resolved = cls.resolve_roles(caller, parties)
        granting = next((r for r in resolved if r in required_set), None)
        return AuthorizationDecision(
            allowed=granting is not None,
            role=granting,
            resolved_roles=resolved,
        )

    @classmethod
    def require(
        cls,
        caller: Caller,
        parties: RecordParties,
        required: Iterable[Role],
        action: str,
    ) -> Role:
        """Return the granting role or raise AuthorizationError."""
        required_roles = tuple(required)
        decision = cls.check(caller, parties, required_roles)
        if decision.role is None:
            names = " or ".join(r.value for r in required_roles)
            logger.warning(
                "Denied %s for user %s (required %s, held %s)",
                action,
                caller.user_id,
                names,
                [r.value for r in decision.resolved_roles],
            )
            raise AuthorizationError(
                f"Requires role: {names}",
                action=action,
                required_roles=[r.value for r in required_roles],
            )
        return decision.role

    @classmethod
    def require_admin(cls, caller: Caller, action: str) -> Role:
        """Shortcut for operations that are admin-only regardless of record."""
        return cls.require(caller, RecordParties(), (Role.ADMIN,), action)
