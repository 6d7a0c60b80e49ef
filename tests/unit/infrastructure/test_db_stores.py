"""DB-backed stores against a mocked AsyncSession: conflict mapping and the guarded upsert statement."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import IntegrityError

from filplus.application.exceptions import ConcurrencyConflictError
from filplus.domain.models.events import DomainEvent
from filplus.infrastructure.database.application_details_db import DbApplicationDetailsStore
from filplus.infrastructure.database.event_store_db import DbEventStore


def _session_factory(session):
    factory = MagicMock()
    factory.return_value.__aenter__ = AsyncMock(return_value=session)
    factory.return_value.__aexit__ = AsyncMock(return_value=False)
    return factory


def _session(version: int = 0, returned_id=None):
    session = AsyncMock()
    session.add_all = MagicMock()
    result = MagicMock()
    result.scalar.return_value = version
    result.scalar_one_or_none.return_value = returned_id
    session.execute = AsyncMock(return_value=result)
    return session


@pytest.mark.asyncio
async def test_append_checks_expected_version():
    session = _session(version=3)
    store = DbEventStore(_session_factory(session))
    with pytest.raises(ConcurrencyConflictError):
        await store.append("app-1", [DomainEvent("app-1", 3, "KYCApproved")], expected_version=2)
    session.commit.assert_not_awaited()


@pytest.mark.asyncio
async def test_unique_violation_becomes_concurrency_conflict():
    session = _session(version=2)
    session.commit = AsyncMock(side_effect=IntegrityError("insert", {}, Exception("duplicate key")))
    store = DbEventStore(_session_factory(session))
    with pytest.raises(ConcurrencyConflictError):
        await store.append("app-1", [DomainEvent("app-1", 3, "KYCApproved")], expected_version=2)
    session.rollback.assert_awaited_once()


@pytest.mark.asyncio
async def test_append_adds_one_row_per_event():
    session = _session(version=0)
    store = DbEventStore(_session_factory(session))
    events = [DomainEvent("app-1", 1, "ApplicationCreated"), DomainEvent("app-1", 2, "KYCApproved")]
    await store.append("app-1", events, expected_version=0)
    rows = list(session.add_all.call_args.args[0])
    assert [(r.sequence_number, r.event_type) for r in rows] == [(1, "ApplicationCreated"), (2, "KYCApproved")]
    session.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_upsert_is_guarded_merge():
    session = _session(returned_id="app-1")
    store = DbApplicationDetailsStore(_session_factory(session))

    assert await store.upsert("app-1", {"status": "KYC_PHASE", "name": "Alice"}, 4) is True

    stmt = session.execute.await_args.args[0]
    sql = str(stmt.compile(dialect=postgresql.dialect()))
    assert "ON CONFLICT (id) DO UPDATE" in sql
    assert "||" in sql
    assert "application_details.last_sequence_number < excluded.last_sequence_number" in sql


@pytest.mark.asyncio
async def test_upsert_skipped_by_guard_returns_false():
    store = DbApplicationDetailsStore(_session_factory(_session(returned_id=None)))
    assert await store.upsert("app-1", {"name": "Alice"}, 1) is False
