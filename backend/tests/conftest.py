"""
Pytest configuration and fixtures for the push dispatch tests.

The token tables run on in-memory SQLite; Firestore, Redis and FCM are
replaced by the fakes in fakes.py.
"""
import os

# Must be set before momento.core.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("FIREBASE_ENABLED", "false")
os.environ.setdefault("SENTRY_ENABLED", "false")

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from momento.core.async_database import Base
from momento.db.models import device_token, guest_device  # noqa: F401
from momento.services.device_token_service import DeviceTokenService
from momento.services.guest_device_service import GuestDeviceService
from momento.services.notification_dispatcher import NotificationDispatcher
from momento.services.notification_store import NotificationStore
from momento.services.rate_limiter import RateLimiter
from momento.services.token_validation import TokenValidator

from fakes import FakeDocumentStore, FakePushTransport, FakeRateLimitStore


@pytest_asyncio.fixture
async def session_factory():
    """Fresh in-memory database per test"""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
def validator():
    """Strict validator, as in production"""
    return TokenValidator(min_length=140, max_length=200, relaxed=False)


@pytest.fixture
def token_service(session_factory, validator):
    return DeviceTokenService(session_factory, validator)


@pytest.fixture
def guest_device_service(session_factory):
    return GuestDeviceService(session_factory)


@pytest.fixture
def document_store():
    return FakeDocumentStore()


@pytest.fixture
def notification_store(document_store):
    return NotificationStore(document_store, expiration_days=30, retry_attempts=3, retry_delay=0)


@pytest.fixture
def rate_limit_store():
    return FakeRateLimitStore()


@pytest.fixture
def rate_limiter(rate_limit_store):
    return RateLimiter(rate_limit_store, max_requests=1000, window_seconds=1, wait_seconds=0, max_wait_seconds=0)


@pytest.fixture
def transport():
    return FakePushTransport()


@pytest.fixture
def dispatcher(token_service, guest_device_service, notification_store, rate_limiter, validator, transport):
    return NotificationDispatcher(
        token_service=token_service,
        guest_device_service=guest_device_service,
        notification_store=notification_store,
        rate_limiter=rate_limiter,
        validator=validator,
        transport=transport,
        batch_size=500,
    )
