"""
Pytest fixtures for test database, client, and authentication.

Uses an SQLite file database recreated per test. Every request gets its own
session, like in production, so concurrent requests really compete for the
same rows. BEGIN IMMEDIATE makes SQLite take the write lock at the start of
each transaction, which serializes writers the way row locks would.
"""

import os
import tempfile

TEST_DB_PATH = os.path.join(tempfile.gettempdir(), "huntbook_test.db")

# Settings are read once at import time
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{TEST_DB_PATH}"
os.environ["REDIS_ENABLED"] = "false"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["PAYPAL_WEBHOOK_ID"] = ""
os.environ["PAYPAL_CLIENT_ID"] = ""
os.environ["PAYPAL_CLIENT_SECRET"] = ""

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from jose import jwt
from sqlalchemy import event as sa_event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

from huntbook.main import app
from huntbook.db.base import Base
from huntbook.db.session import get_db
from huntbook.models import Event, User
from huntbook.services import strategy_factory

test_engine = create_async_engine(f"sqlite+aiosqlite:///{TEST_DB_PATH}", echo=False)
TestSessionLocal = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@sa_event.listens_for(test_engine.sync_engine, "connect")
def _disable_driver_transactions(dbapi_connection, connection_record):
    dbapi_connection.isolation_level = None


@sa_event.listens_for(test_engine.sync_engine, "begin")
def _begin_immediate(conn):
    conn.exec_driver_sql("BEGIN IMMEDIATE")


FUTURE_DATE = "April 20, 2099"
PAST_DATE = "January 10, 2020"
EVENT_TIME = "6:00 PM - 9:00 PM"


def make_token(user_id: str) -> str:
    return jwt.encode({"sub": user_id}, "test-secret-key", algorithm="HS256")


def auth_for(user_id: str) -> dict:
    return {"Authorization": f"Bearer {make_token(user_id)}"}


async def fetch(model, pk):
    """Read a row in a short-lived session so no transaction stays open."""
    async with TestSessionLocal() as session:
        return await session.get(model, pk)


async def fetch_all(statement) -> list:
    async with TestSessionLocal() as session:
        return list((await session.execute(statement)).scalars().all())


async def store(instance):
    async with TestSessionLocal() as session:
        session.add(instance)
        await session.commit()
        await session.refresh(instance)
        return instance


async def create_event(**overrides) -> Event:
    values = {
        "title": "Night Shots at the Harbour",
        "type": "hunt",
        "date": FUTURE_DATE,
        "time": EVENT_TIME,
        "location": "Old Harbour",
        "venue_name": "Pier 4",
        "description": "Long exposures along the docks",
        "spots": 10,
        "attendees": [],
        "pending_bookings": [],
        "status": "upcoming",
    }
    values.update(overrides)
    values.setdefault("spots_left", values["spots"])
    return await store(Event(**values))


@pytest_asyncio.fixture(scope="function", autouse=True)
async def database() -> AsyncGenerator[None, None]:
    """Create tables, run the test, then drop tables for isolation."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await test_engine.dispose()


@pytest.fixture(autouse=True)
def transactional_strategy(monkeypatch):
    """Each test starts on the default strategy unless it swaps it."""
    monkeypatch.setattr(strategy_factory, "_strategy", strategy_factory.get_booking_strategy("transactional"))


@pytest_asyncio.fixture(scope="function")
async def client() -> AsyncGenerator[AsyncClient, None]:
    """HTTP client whose requests each get a fresh session on the test database."""

    async def override_get_db():
        async with TestSessionLocal() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Session for calling services directly. Tests must commit or roll back."""
    async with TestSessionLocal() as session:
        yield session


@pytest_asyncio.fixture
async def test_user() -> User:
    return await store(
        User(id="user-1", email="ada@example.com", display_name="Ada", role="user")
    )


@pytest_asyncio.fixture
async def admin_user() -> User:
    return await store(
        User(id="admin-1", email="admin@example.com", display_name="Admin", role="admin")
    )


@pytest.fixture
def auth_headers(test_user: User) -> dict:
    return auth_for(test_user.id)


@pytest.fixture
def admin_headers(admin_user: User) -> dict:
    return auth_for(admin_user.id)


@pytest_asyncio.fixture
async def test_event() -> Event:
    """Free event with 10 spots, far in the future."""
    return await create_event()


@pytest_asyncio.fixture
async def paid_event() -> Event:
    return await create_event(
        title="Portrait Workshop",
        type="workshop",
        spots=5,
        member_price=20.0,
        non_member_price=25.0,
        payment_amount=25.0,
    )


@pytest_asyncio.fixture
async def past_event() -> Event:
    return await create_event(title="Last Winter Walk", type="walk", date=PAST_DATE, status="past")
