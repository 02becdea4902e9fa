"""Tests for session scoping and the upsert helper."""

import pytest
from sqlalchemy import func, select
from sqlalchemy.dialects import sqlite

from nexus_compliance import database
from nexus_compliance.models import EscrowRecord, UserProfile


@pytest.fixture
def bound_db(monkeypatch, engine, session_factory):
    monkeypatch.setattr(database, "init_db", lambda: (engine, session_factory))


async def _user_count(session_factory) -> int:
    async with session_factory() as session:
        return await session.scalar(select(func.count()).select_from(UserProfile))


async def test_get_session_commits_on_clean_exit(bound_db, session_factory):
    async with database.get_session() as session:
        session.add(UserProfile(user_type="client"))

    assert await _user_count(session_factory) == 1


async def test_get_session_rolls_back_on_error(bound_db, session_factory):
    with pytest.raises(RuntimeError):
        async with database.get_session() as session:
            session.add(UserProfile(user_type="client"))
            await session.flush()
            raise RuntimeError("boom")

    assert await _user_count(session_factory) == 0


async def test_dialect_insert_follows_bound_engine(session):
    stmt = database.dialect_insert(session, EscrowRecord.__table__)

    assert isinstance(stmt, sqlite.Insert)
    assert hasattr(stmt, "on_conflict_do_update")


async def test_dialect_insert_rejects_unsupported_dialect(session, monkeypatch):
    bind = session.get_bind()
    monkeypatch.setattr(bind.dialect, "name", "mysql")

    with pytest.raises(ValueError, match="mysql"):
        database.dialect_insert(session, EscrowRecord.__table__)
