import os
from collections.abc import AsyncGenerator
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

# Set test env vars before importing app modules
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test.db"
os.environ["LOG_LEVEL"] = "DEBUG"

# Test database URL (use SQLite for tests)
TEST_DATABASE_URL = "sqlite+aiosqlite:///./test.db"

# NullPool: every checkout opens a fresh connection on the current event loop
engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)
TestingSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

T0 = datetime(2026, 10, 1, 18, 0, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
async def setup_database():
    from viewership.db.base import Base
    from viewership.models import playback, stats  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    async with TestingSessionLocal() as session:
        yield session


@pytest.fixture
def session_factory() -> async_sessionmaker[AsyncSession]:
    return TestingSessionLocal


@pytest.fixture
def t0() -> datetime:
    """Fixed reference instant for building event timelines."""
    return T0


@pytest.fixture
def make_event(t0: datetime):
    """Factory for engine-side playback events at ``t0 + offset`` seconds."""
    from viewership.schemas.playback import PlaybackEventRecord

    def _make(
        client_id: str,
        event_type: str,
        offset: float = 0,
        stream_id: str = "s1",
        country: str = "nl",
        device_type: str = "desktop",
    ) -> PlaybackEventRecord:
        return PlaybackEventRecord(
            stream_id=stream_id,
            client_id=client_id,
            event_type=event_type,
            country=country,
            device_type=device_type,
            created_at=t0 + timedelta(seconds=offset),
        )

    return _make
