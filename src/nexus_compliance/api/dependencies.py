"""FastAPI dependencies for dependency injection."""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from nexus_compliance.config import Settings, get_settings
from nexus_compliance.database import init_db
from nexus_compliance.services.authorization import Caller
from nexus_compliance.services.compliance_log import RequestContext
from nexus_compliance.services.identity import (
    IdentityProvider,
    JWTIdentityProvider,
    parse_bearer,
    resolve_caller,
)


def get_app_settings() -> Settings:
    """Get settings dependency."""
    return get_settings()


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get the session factory; overridden in tests."""
    _, factory = init_db()
    return factory


async def get_db_session(
    factory: Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)],
) -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency.

    One session per request. Routes commit explicitly once every write of the
    unit of work succeeded; any exception rolls the whole unit back.
    """
    async with factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


def get_identity_provider(
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> IdentityProvider:
    """Get the bearer token verifier."""
    return JWTIdentityProvider(settings)


async def get_caller(
    db: Annotated[AsyncSession, Depends(get_db_session)],
    identity: Annotated[IdentityProvider, Depends(get_identity_provider)],
    authorization: Annotated[str | None, Header()] = None,
) -> Caller:
    """Authenticate the bearer token and resolve the caller's profile linkage."""
    token = parse_bearer(authorization)
    return await resolve_caller(db, identity.verify(token))


def get_request_context(
    request: Request,
    x_forwarded_for: Annotated[str | None, Header()] = None,
    user_agent: Annotated[str | None, Header()] = None,
) -> RequestContext:
    """Capture request provenance for audit rows and compliance events."""
    ip_address = None
    if x_forwarded_for:
        ip_address = x_forwarded_for.split(",")[0].strip() or None
    if ip_address is None and request.client is not None:
        ip_address = request.client.host
    return RequestContext(ip_address=ip_address, user_agent=user_agent)


# Type aliases for cleaner dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db_session)]
AppSettings = Annotated[Settings, Depends(get_app_settings)]
CurrentCaller = Annotated[Caller, Depends(get_caller)]
ReqContext = Annotated[RequestContext, Depends(get_request_context)]
