"""
Health check endpoints
"""
from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from momento.api.dependencies.services import get_dispatcher
from momento.core.async_database import get_db
from momento.core.cache import get_redis
from momento.services.notification_dispatcher import NotificationDispatcher

router = APIRouter()


@router.get("/health")
async def health_check():
    """
    Basic health check endpoint
    """
    return {
        "status": "healthy",
        "message": "Service is running"
    }


@router.get("/health/db")
async def database_health(db: AsyncSession = Depends(get_db)):
    """
    Check database connectivity
    """
    try:
        await db.execute(text("SELECT 1"))
        return {
            "status": "healthy",
            "database": "connected"
        }
    except Exception as e:
        return {
            "status": "unhealthy",
            "database": "disconnected",
            "error": str(e)
        }


@router.get("/health/cache")
async def cache_health():
    """
    Check Redis connectivity (rate limit counters)
    """
    try:
        redis = await get_redis()
        await redis.ping()
        return {
            "status": "healthy",
            "cache": "connected"
        }
    except Exception as e:
        return {
            "status": "unhealthy",
            "cache": "disconnected",
            "error": str(e)
        }


@router.get("/health/push")
async def push_health(dispatcher: NotificationDispatcher = Depends(get_dispatcher)):
    """
    Report whether push delivery and the notification feed are initialized
    """
    transport_ready = dispatcher.transport_ready
    feed_ready = dispatcher.notification_store.is_available
    return {
        "status": "healthy" if transport_ready and feed_ready else "degraded",
        "transport": "initialized" if transport_ready else "not initialized",
        "feed": "initialized" if feed_ready else "not initialized"
    }
