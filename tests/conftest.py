"""Pytest fixtures for compliance workflow tests."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import AsyncGenerator, Awaitable, Callable
from uuid import UUID

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from nexus_compliance.database import make_session_factory
from nexus_compliance.models import (
    Base,
    Contract,
    Payout,
    TalentProfile,
    TimeLog,
    UserProfile,
)
from nexus_compliance.services.authorization import Caller
from nexus_compliance.services.compliance_log import RequestContext

# In-memory SQLite shared by every connection of one test
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create a fresh test database engine per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory configured like the application's."""
    return make_session_factory(engine)


@pytest.fixture
async def session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def context() -> RequestContext:
    """Request provenance used by service calls."""
    return RequestContext(ip_address="203.0.113.7", user_agent="pytest")


# ============================================================================
# Record factories
# ============================================================================


@pytest.fixture
def make_user(session: AsyncSession) -> Callable[..., Awaitable[UserProfile]]:
    """Factory for user profiles."""

    async def _make(user_type: str = "user", email: str | None = None) -> UserProfile:
        user = UserProfile(user_type=user_type, email=email)
        session.add(user)
        await session.flush()
        return user

    return _make


@pytest.fixture
def make_talent(session: AsyncSession) -> Callable[..., Awaitable[TalentProfile]]:
    """Factory for talent profiles."""

    async def _make(
        user: UserProfile,
        *,
        az_eligible: bool = True,
        first_name: str = "Ada",
        last_name: str = "Lovelace",
        tax_classification: str = "1099",
        residency_state: str = "AZ",
    ) -> TalentProfile:
        profile = TalentProfile(
            user_id=user.id,
            legal_first_name=first_name,
            legal_last_name=last_name,
            tax_classification=tax_classification,
            residency_state=residency_state,
            az_eligible=az_eligible,
        )
        session.add(profile)
        await session.flush()
        return profile

    return _make


@pytest.fixture
def make_contract(session: AsyncSession) -> Callable[..., Awaitable[Contract]]:
    """Factory for contracts."""

    async def _make(client_id: UUID, creator_id: UUID, title: str = "Retainer") -> Contract:
        contract = Contract(client_id=client_id, creator_id=creator_id, title=title)
        session.add(contract)
        await session.flush()
        return contract

    return _make


@pytest.fixture
def make_time_log(session: AsyncSession) -> Callable[..., Awaitable[TimeLog]]:
    """Factory for time logs written directly in a given status."""

    async def _make(
        profile: TalentProfile,
        *,
        contract: Contract | None = None,
        status: str = "draft",
        hours: str = "8.00",
        location_state: str | None = "AZ",
        az_hours: str | None = None,
        log_date: date = date(2025, 3, 14),
    ) -> TimeLog:
        time_log = TimeLog(
            talent_profile_id=profile.id,
            contract_id=contract.id if contract else None,
            log_date=log_date,
            hours_worked=Decimal(hours),
            location_type="onsite",
            location_state=location_state,
            az_eligible_hours=Decimal(az_hours if az_hours is not None else "0"),
            submission_status=status,
        )
        session.add(time_log)
        await session.flush()
        return time_log

    return _make


@pytest.fixture
def make_payout(session: AsyncSession) -> Callable[..., Awaitable[Payout]]:
    """Factory for payouts."""

    async def _make(
        profile: TalentProfile,
        *,
        net: str = "100.00",
        gross: str | None = None,
        status: str = "pending",
        tax_year: int = 2025,
        contract: Contract | None = None,
        scheduled_date: date | None = None,
    ) -> Payout:
        payout = Payout(
            talent_profile_id=profile.id,
            contract_id=contract.id if contract else None,
            gross_amount=Decimal(gross or net),
            net_amount=Decimal(net),
            status=status,
            tax_year=tax_year,
            scheduled_date=scheduled_date,
        )
        session.add(payout)
        await session.flush()
        return payout

    return _make


# ============================================================================
# Parties
# ============================================================================


@pytest.fixture
async def admin_user(make_user) -> UserProfile:
    return await make_user("admin", "admin@nexus.test")


@pytest.fixture
async def client_user(make_user) -> UserProfile:
    return await make_user("client", "client@nexus.test")


@pytest.fixture
async def talent_user(make_user) -> UserProfile:
    return await make_user("creator", "talent@nexus.test")


@pytest.fixture
async def talent_profile(make_talent, talent_user: UserProfile) -> TalentProfile:
    return await make_talent(talent_user)


@pytest.fixture
async def contract(make_contract, client_user: UserProfile, talent_user: UserProfile) -> Contract:
    return await make_contract(client_user.id, talent_user.id)


@pytest.fixture
def admin_caller(admin_user: UserProfile) -> Caller:
    return Caller(user_id=admin_user.id, user_type="admin")


@pytest.fixture
def client_caller(client_user: UserProfile) -> Caller:
    return Caller(user_id=client_user.id, user_type="client")


@pytest.fixture
def talent_caller(talent_user: UserProfile, talent_profile: TalentProfile) -> Caller:
    return Caller(
        user_id=talent_user.id,
        user_type="creator",
        talent_profile_id=talent_profile.id,
    )
