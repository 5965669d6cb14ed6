"""
Wiring for the notification dispatcher and its collaborators
"""
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional
import logging

import firebase_admin
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from momento.core.cache import RedisRateLimitStore
from momento.core.config import settings
from momento.core.firebase import DocumentStore, create_document_store, init_firebase
from momento.services.device_token_service import DeviceTokenService
from momento.services.guest_device_service import GuestDeviceService
from momento.services.notification_dispatcher import NotificationDispatcher
from momento.services.notification_store import NotificationStore
from momento.services.push_transport import FirebasePushTransport, PushTransport
from momento.services.rate_limiter import RateLimiter
from momento.services.token_validation import TokenValidator

logger = logging.getLogger(__name__)


def create_dispatcher(
    session_factory: async_sessionmaker[AsyncSession],
    redis: Redis,
    firebase_app: Optional[firebase_admin.App] = None,
    transport: Optional[PushTransport] = None,
    document_store: Optional[DocumentStore] = None,
) -> NotificationDispatcher:
    """
    Build a NotificationDispatcher from live connections

    Args:
        session_factory: Session factory for the token and guest device tables
        redis: Redis client holding rate limit counters
        firebase_app: Initialized Firebase app; None leaves push and the feed unavailable
        transport: Overrides the transport built from ``firebase_app``
        document_store: Overrides the store built from ``firebase_app``

    Returns:
        A ready dispatcher
    """
    validator = TokenValidator.from_settings()

    if transport is None and firebase_app is not None:
        transport = FirebasePushTransport(firebase_app, ttl_seconds=settings.FCM_TTL_IN_SECONDS)
    if document_store is None:
        document_store = create_document_store(firebase_app)

    if transport is None:
        logger.warning("Push transport not initialized, sends will fail until Firebase is configured")

    return NotificationDispatcher(
        token_service=DeviceTokenService(session_factory, validator),
        guest_device_service=GuestDeviceService(session_factory),
        notification_store=NotificationStore.from_settings(document_store),
        rate_limiter=RateLimiter.from_settings(RedisRateLimitStore(redis)),
        validator=validator,
        transport=transport,
        batch_size=settings.FCM_BATCH_SIZE,
    )


@asynccontextmanager
async def dispatcher_scope() -> AsyncIterator[NotificationDispatcher]:
    """
    Dispatcher with connections owned by the current event loop.

    Used by worker tasks, which run each job in a fresh loop.
    """
    from momento.core.async_database import AsyncSessionLocal, engine

    redis = Redis.from_url(settings.REDIS_URL, encoding="utf-8", decode_responses=True)
    try:
        yield create_dispatcher(AsyncSessionLocal, redis, init_firebase())
    finally:
        await redis.aclose()
        # Pooled connections are bound to this loop
        await engine.dispose()
