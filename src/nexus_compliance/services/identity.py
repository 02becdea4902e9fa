"""Bearer token verification and caller resolution.

The identity service is a black box that turns a bearer token into
``(caller_id, verified)``. In production that is an HS256 JWT issued by the
hosted auth provider; ``sub`` carries the user id.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Protocol
from uuid import UUID

import jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from nexus_compliance.config import Settings
from nexus_compliance.errors import AuthenticationError
from nexus_compliance.models import TalentProfile, UserProfile
from nexus_compliance.services.authorization import Caller

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VerifiedIdentity:
    """Result of token verification."""

    caller_id: UUID | None
    verified: bool


class IdentityProvider(Protocol):
    """Protocol for the external identity/session service."""

    def verify(self, token: str) -> VerifiedIdentity:
        """Verify a bearer token."""
        ...


class JWTIdentityProvider:
    """Verifies HS256 access tokens issued by the auth provider."""

    def __init__(self, settings: Settings):
        self._secret = settings.jwt_secret
        self._algorithm = settings.jwt_algorithm
        self._audience = settings.jwt_audience

    def verify(self, token: str) -> VerifiedIdentity:
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                audience=self._audience,
                options={"require": ["exp", "sub"], "verify_aud": self._audience is not None},
            )
            return VerifiedIdentity(caller_id=UUID(str(payload["sub"])), verified=True)
        except jwt.ExpiredSignatureError:
            logger.info("Rejected expired access token")
        except (jwt.InvalidTokenError, ValueError):
            logger.info("Rejected invalid access token")
        return VerifiedIdentity(caller_id=None, verified=False)

    def issue(self, user_id: UUID, expires_in: timedelta = timedelta(hours=1)) -> str:
        """Issue a token for ``user_id``. Used by local tooling and tests."""
        now = datetime.now(timezone.utc)
        payload: dict[str, object] = {
            "sub": str(user_id),
            "iat": int(now.timestamp()),
            "exp": int((now + expires_in).timestamp()),
        }
        if self._audience is not None:
            payload["aud"] = self._audience
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)


def parse_bearer(authorization: str | None) -> str:
    """Extract the token from an ``Authorization: Bearer <token>`` header."""
    if not authorization or not authorization.startswith("Bearer "):
        raise AuthenticationError("Unauthorized - Bearer token required")
    token = authorization.split(" ", 1)[1].strip()
    if not token:
        raise AuthenticationError("Unauthorized - Bearer token required")
    return token


async def resolve_caller(session: AsyncSession, identity: VerifiedIdentity) -> Caller:
    """Load the caller's account type and talent profile linkage.

    Users without a profile row default to the plain ``user`` account type.
    """
    if not identity.verified or identity.caller_id is None:
        raise AuthenticationError("Invalid or expired token")

    user_type = await session.scalar(
        select(UserProfile.user_type).where(UserProfile.id == identity.caller_id)
    )
    talent_profile_id = await session.scalar(
        select(TalentProfile.id).where(TalentProfile.user_id == identity.caller_id)
    )
    return Caller(
        user_id=identity.caller_id,
        user_type=user_type or "user",
        talent_profile_id=talent_profile_id,
    )
