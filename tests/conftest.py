"""
Pytest configuration and shared fixtures
"""

import os

# Settings are read at import time; configure before importing the app.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("EXPIRY_SWEEP_ENABLED", "false")
os.environ.setdefault("REDEEM_RETRY_BACKOFF_SECONDS", "0")

import uuid
from datetime import datetime, timedelta
from decimal import Decimal
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession
from sqlalchemy.pool import StaticPool

from app.core.clock import utcnow
from app.core.db import Base, build_engine, build_sessionmaker, get_db, init_models
from app.main import app
from app.models.voucher import DISCOUNT_PERCENTAGE, Voucher
from app.services.api_tokens import issue_api_token

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture(scope="function")
async def db_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Fresh in-memory SQLite database per test (single shared connection)."""
    engine = build_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await init_models(engine)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(db_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    session_factory = build_sessionmaker(db_engine)
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture(scope="function")
async def async_client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """
    HTTP client against the FastAPI app with get_db pointed at the test session.
    """

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def api_token(db_session: AsyncSession) -> str:
    _, raw = await issue_api_token(db_session, name="test-suite")
    return raw


@pytest.fixture(scope="function")
def auth_headers(api_token: str) -> dict:
    return {"Authorization": f"Bearer {api_token}"}


@pytest.fixture
def now() -> datetime:
    return utcnow()


@pytest.fixture
def make_voucher(db_session: AsyncSession):
    """
    Insert a voucher row directly (bypasses admin validation so tests can
    build expired / not-yet-active / exhausted vouchers).
    """

    async def _make(**overrides) -> Voucher:
        now = utcnow()
        values = {
            "id": uuid.uuid4(),
            "code": f"V-{uuid.uuid4().hex[:8]}",
            "name": "Test voucher",
            "is_active": True,
            "discount_type": DISCOUNT_PERCENTAGE,
            "discount_value": Decimal("20"),
            "max_discount_amount": None,
            "max_redemptions": 100,
            "daily_quota": 10,
            "redeemed_count": 0,
            "start_date": now - timedelta(days=1),
            "expiration_date": now + timedelta(days=30),
            "customer_id": None,
        }
        values.update(overrides)
        voucher = Voucher(**values)
        db_session.add(voucher)
        await db_session.commit()
        return voucher

    return _make
