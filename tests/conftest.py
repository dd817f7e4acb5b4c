"""Pytest configuration for the habitpulse test suite."""

from __future__ import annotations

import os


def _ensure_test_env() -> None:
    """Seed required environment variables for tests."""
    os.environ.setdefault("BOT_TOKEN", "123456:test-token")
    os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")


_ensure_test_env()

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from habitpulse.models import Base
from habitpulse.repositories.store import DataStore

from helpers import Factory, FixedClock, RecordingSender, utc


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)

    # pysqlite defers BEGIN on its own, which breaks SAVEPOINT
    @event.listens_for(engine.sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def store(session) -> DataStore:
    return DataStore(session)


@pytest.fixture
def factory(session) -> Factory:
    return Factory(session)


@pytest.fixture
def clock() -> FixedClock:
    # Monday morning
    return FixedClock(utc(2024, 1, 15, 6, 0))


@pytest.fixture
def sender() -> RecordingSender:
    return RecordingSender()
