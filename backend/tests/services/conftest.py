"""Service test fixtures - async DB, fake object store, and FastAPI test client.

Invariants:
    - Every test gets a fresh in-memory SQLite database
    - app.state carries a DatabasePool bound to the test engine, so routes and
      the gateway open sessions exactly as they do in production
    - The object store is always the in-memory fake; nothing reaches S3

Design Decisions:
    - SQLite in-memory: fast, no external dependency, sufficient for route tests
      (PostgreSQL-specific features are not exercised here)
    - Pool factory returns a pre-built manager instead of calling create_async_engine
      with pool sizing arguments SQLite does not accept
"""

from datetime import date

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncSession, async_sessionmaker, create_async_engine,
)
from sqlalchemy.pool import StaticPool

from certbridge.config import get_settings
from certbridge.db.base import Base
from certbridge.infrastructure.database import DatabasePool, DatabaseSessionManager
from certbridge.main import app
from certbridge.models.holder_record import HolderRecord

from tests.fakes import FakeObjectStore


@pytest.fixture
async def test_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def test_session_factory(test_engine):
    return async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False,
    )


@pytest.fixture
async def test_db(test_session_factory):
    async with test_session_factory() as session:
        yield session


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
def object_store():
    return FakeObjectStore(bucket=get_settings().s3_bucket_name)


@pytest.fixture
def db_pool(test_engine, test_session_factory):
    fake_manager = DatabaseSessionManager.__new__(DatabaseSessionManager)
    fake_manager.engine = test_engine
    fake_manager._session_factory = test_session_factory
    return DatabasePool(lambda: fake_manager)


@pytest.fixture
async def client(db_pool, object_store):
    """FastAPI test client with app.state wired to test collaborators."""
    app.state.db_pool = db_pool
    app.state.object_store = object_store
    app.state.partner_client = None

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c

    for name in ("db_pool", "object_store", "partner_client"):
        if hasattr(app.state, name):
            delattr(app.state, name)


@pytest.fixture
def make_record(test_db):
    """Insert a HolderRecord with sensible defaults; keyword overrides win."""

    async def _make(**overrides) -> HolderRecord:
        values = {
            "full_name": "Asha Verma",
            "holder_id": "DL-1001",
            "event_id": "CONF-24",
            "email": "asha@example.org",
            "event_date": date(2024, 3, 15),
        }
        values.update(overrides)
        record = HolderRecord(**values)
        test_db.add(record)
        await test_db.commit()
        await test_db.refresh(record)
        return record

    return _make
