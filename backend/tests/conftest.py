"""Pytest configuration and shared fixtures: sqlite test database, API client, reminder engine."""

import os
import tempfile
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from pytest_asyncio import is_async_test
from sqlalchemy import delete

# Set test DB before app imports so config/engine use it
_TEST_DB = os.path.join(tempfile.gettempdir(), "hydration_test.db")
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{_TEST_DB}")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("APP_ENV", "development")
os.environ.setdefault("SCHEDULER_AUTOSTART", "false")
os.environ.setdefault("TEST_FREQUENCY_EMAILS", "tester@test.com")

from hydration.core.auth import create_access_token, hash_password
from hydration.db.base import Base
from hydration.db.session import async_session_maker, engine, init_db
from hydration.main import app
from hydration.models.push_subscription import PushSubscription
from hydration.models.user import User
from hydration.services.engine import build_reminder_engine
from hydration.services.web_push import SendResult, WebPushTransport


def pytest_collection_modifyitems(items):
    """Run every async test on the session loop the shared engine was created on."""
    session_loop = pytest.mark.asyncio(loop_scope="session")
    for item in items:
        if is_async_test(item):
            item.add_marker(session_loop, append=False)


@pytest_asyncio.fixture(scope="session")
async def ensure_db():
    """Create tables once per test session (no scheduler)."""
    if os.path.exists(_TEST_DB):
        os.remove(_TEST_DB)
    await init_db()
    yield
    await engine.dispose()


async def _clear_all():
    """Delete all rows in reverse dependency order so tests start clean."""
    async with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            await conn.execute(delete(table))


@pytest_asyncio.fixture
async def clean_db(ensure_db):
    await _clear_all()
    yield


def make_transport(send: AsyncMock | None = None) -> WebPushTransport:
    """Configured transport whose network send is replaced by an AsyncMock."""
    transport = WebPushTransport("test-private-key", "test-public-key", "mailto:test@test.com")
    transport.send = send or AsyncMock(return_value=SendResult(status_code=201))
    return transport


@pytest.fixture
def push_transport() -> WebPushTransport:
    return make_transport()


@pytest.fixture
def reminder_engine(push_transport):
    """Engine wired like the lifespan does, with the fake transport; never started."""
    reminders = build_reminder_engine(transport=push_transport)
    app.state.reminders = reminders
    yield reminders
    reminders.scheduler.stop()
    app.state.reminders = None


@pytest_asyncio.fixture
async def client(ensure_db, reminder_engine):
    """Yield AsyncClient. ASGITransport does not run the lifespan; the engine comes from reminder_engine."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


async def create_user(email: str = "test@test.com", **prefs) -> User:
    async with async_session_maker() as session:
        user = User(email=email, password_hash=hash_password("password123"), **prefs)
        session.add(user)
        await session.commit()
        await session.refresh(user)
        return user


async def create_subscription(user_id: int, endpoint: str, **fields) -> PushSubscription:
    async with async_session_maker() as session:
        sub = PushSubscription(
            user_id=user_id,
            endpoint=endpoint,
            p256dh_key=fields.pop("p256dh_key", "p256dh-key"),
            auth_key=fields.pop("auth_key", "auth-key"),
            **fields,
        )
        session.add(sub)
        await session.commit()
        await session.refresh(sub)
        return sub


async def get_subscription(subscription_id: int) -> PushSubscription | None:
    async with async_session_maker() as session:
        return await session.get(PushSubscription, subscription_id)


@pytest_asyncio.fixture
async def test_user(clean_db, client):
    """Create a user via DB (committed) and return (user_id, email, access_token)."""
    user = await create_user()
    token = create_access_token(user.id, user.email)
    return user.id, user.email, token


@pytest.fixture
def auth_headers(test_user):
    """Return dict of Authorization header for test_user."""
    _, __, token = test_user
    return {"Authorization": f"Bearer {token}"}
