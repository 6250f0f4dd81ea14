"""Pytest configuration and fixtures shared across all test modules.

Environment variables are set before any app module is imported, so the
module-level settings, engine and limiter are built for tests: an in-memory
database, no table creation on startup and no IP throttling.

Every test gets its own in-memory database and a manual clock it can move
forward minute by minute.
"""

import os

# Set before any imports that load settings
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["AUTO_CREATE_TABLES"] = "false"
os.environ["IP_THROTTLE_ENABLED"] = "false"

from datetime import datetime, timedelta

import httpx
import pytest
import pytest_asyncio

from app.db.session import build_session_maker
from app.db.sqlite_adapter import SQLiteAdapter
from app.main import create_app
from app.services.policy_service import PolicyService
from app.services.record_store import RecordStore

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

START = datetime(2026, 1, 1, 12, 0, 0)


class ManualClock:
    """Clock that only moves when a test tells it to."""

    def __init__(self, start: datetime = START):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    return ManualClock()


@pytest_asyncio.fixture
async def engine():
    adapter = SQLiteAdapter(in_memory=True)
    engine = adapter.create_engine(TEST_DATABASE_URL)
    await adapter.create_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return build_session_maker(engine)


@pytest_asyncio.fixture
async def session(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def store(session):
    return RecordStore(session)


@pytest_asyncio.fixture
async def policy(store, clock):
    """The default global policy (20 tokens, 10/min, costs 2 and 4, 20 attempts, 24h)."""
    return await PolicyService(store, clock=clock).get_policy()


@pytest.fixture
def app(session_maker, clock):
    """App bound to the test database and clock, with two guarded host routes."""
    app = create_app(session_maker=session_maker, clock=clock, manage_database=False)

    async def list_urls():
        return {"urls": []}

    async def shorten():
        return {"shortCode": "abc1234"}

    app.add_api_route("/api/urls", list_urls, methods=["GET"])
    app.add_api_route("/api/shorten", shorten, methods=["POST"])
    return app


@pytest_asyncio.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
