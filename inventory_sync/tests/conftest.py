"""Async test fixtures for inventory sync tests using SQLite."""

from __future__ import annotations

from datetime import date

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from inventory_sync.database import get_db
from inventory_sync.models import Base, Booking
from inventory_sync.models.booking import BOOKING_CONFIRMED
from inventory_sync.runtime import build_runtime
from inventory_sync.services import integration_svc

# Long enough that debounce windows only close when a test flushes them.
TEST_DEBOUNCE_SECONDS = 60.0


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest_asyncio.fixture
async def engine():
    eng = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        await integration_svc.ensure_default_integrations(session)
    return factory


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def runtime(session_factory):
    return build_runtime(session_factory, debounce_seconds=TEST_DEBOUNCE_SECONDS)


@pytest.fixture
def configure_channel(session_factory):
    """Activate a channel and replace its settings and credentials."""

    async def _configure(
        channel_key: str,
        *,
        is_active: bool = True,
        settings_data: dict | None = None,
        credentials: dict | None = None,
    ):
        async with session_factory() as session:
            integration = await integration_svc.get_integration(session, channel_key)
            integration.is_active = is_active
            integration.settings = dict(settings_data or {})
            integration.credentials = dict(credentials or {})
            await session.commit()
            return integration

    return _configure


@pytest.fixture
def add_booking(session_factory):
    async def _add(
        unit_id: int,
        checkin: date,
        checkout: date,
        status: str = BOOKING_CONFIRMED,
        **extra,
    ) -> int:
        async with session_factory() as session:
            booking = Booking(unit_id=unit_id, checkin=checkin, checkout=checkout, status=status, **extra)
            session.add(booking)
            await session.commit()
            return booking.id

    return _add


@pytest_asyncio.fixture
async def client(session_factory, runtime):
    """HTTPX async test client against the inventory sync app."""
    from inventory_sync.app import app

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.state.runtime = runtime

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()
