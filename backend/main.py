"""
FastAPI Application Entry Point
"""
import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from momento.core.config import settings
from momento.core.async_database import AsyncSessionLocal, init_db, close_db
from momento.core.cache import init_cache, close_cache
from momento.core.firebase import init_firebase, close_firebase
from momento.core.sentry import init_sentry
from momento.core.exceptions import setup_exception_handlers
from momento.api.routers import health, device_tokens, notifications, guest_notifications
from momento.middleware.request_context import RequestContextMiddleware
from momento.services.factory import create_dispatcher
from momento.utils.logger import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events
    """
    setup_logging(
        log_level="DEBUG" if settings.DEBUG else "INFO",
        json_logs=not settings.DEBUG
    )
    init_sentry()

    # Startup
    await init_db()
    redis = await init_cache()
    firebase_app = init_firebase()

    app.state.dispatcher = create_dispatcher(AsyncSessionLocal, redis, firebase_app)
    logger.info("Application startup complete")

    yield

    # Shutdown
    app.state.dispatcher = None
    close_firebase(firebase_app)
    await close_cache()
    await close_db()
    logger.info("Application shutdown complete")


# Create FastAPI application
app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    description=settings.DESCRIPTION,
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json"
)

# Setup global exception handlers
setup_exception_handlers(app)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Request ID and log context
app.add_middleware(RequestContextMiddleware)

# Include routers
app.include_router(health.router, prefix=settings.API_PREFIX, tags=["Health"])
app.include_router(device_tokens.router, prefix=f"{settings.API_PREFIX}/device-tokens", tags=["Device Tokens"])
app.include_router(notifications.router, prefix=f"{settings.API_PREFIX}/notifications", tags=["Notifications"])
app.include_router(guest_notifications.router, prefix=f"{settings.API_PREFIX}/guest", tags=["Guest"])


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": settings.PROJECT_NAME,
        "docs": "/api/docs",
        "version": settings.VERSION
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level="info"
    )
