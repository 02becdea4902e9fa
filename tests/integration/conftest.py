"""Integration test fixtures: the full app against the per-test database."""

from collections.abc import AsyncGenerator, Callable
from uuid import UUID

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from nexus_compliance.api.app import create_app
from nexus_compliance.api.dependencies import get_app_settings, get_session_factory
from nexus_compliance.config import Settings
from nexus_compliance.services.identity import JWTIdentityProvider

TEST_SETTINGS = Settings(
    database_url="sqlite+aiosqlite:///:memory:",
    host="127.0.0.1",
    port=8000,
    debug=False,
    log_level="DEBUG",
    jwt_secret="integration-test-secret-with-enough-entropy",
    jwt_algorithm="HS256",
    jwt_audience=None,
    legal_entity="for_profit",
    escrow_realm="corp",
    time_log_realm="nexus",
)


@pytest.fixture
def identity() -> JWTIdentityProvider:
    """Token issuer sharing the app's secret."""
    return JWTIdentityProvider(TEST_SETTINGS)


@pytest.fixture
def auth(identity: JWTIdentityProvider) -> Callable[[UUID], dict[str, str]]:
    """Build an Authorization header for a user id."""

    def _auth(user_id: UUID) -> dict[str, str]:
        return {"Authorization": f"Bearer {identity.issue(user_id)}"}

    return _auth


@pytest.fixture
def app(session_factory: async_sessionmaker[AsyncSession]) -> FastAPI:
    """Application with storage and settings overridden."""
    app = create_app()
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_app_settings] = lambda: TEST_SETTINGS
    return app


@pytest.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Get test HTTP client for the overridden app."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client
