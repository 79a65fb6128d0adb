"""
Main FastAPI application entry point for Charity Platform Services.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from charity.platform.audit import ActivityType, log_system_activity
from charity.platform.communications import get_notification_dispatcher
from charity.platform.core.exception_handlers import register_exception_handlers
from charity.platform.db import check_database_health, create_all_tables_async, get_async_engine
from charity.platform.routers import get_api_info, register_routers
from charity.platform.settings import settings

SHUTDOWN_DRAIN_TIMEOUT = 10.0


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Manage application lifecycle events."""
    logger = structlog.get_logger(__name__)

    logger.info(
        "service.startup.begin",
        service=settings.app_name,
        version=settings.app_version,
        environment=settings.environment.value,
    )

    # Initialize database
    try:
        await create_all_tables_async()
        logger.info("database.init.success")
    except Exception as e:
        logger.error("database.init.failed", error=str(e))
        # Continue in development, fail in production
        if settings.is_production:
            raise

    try:
        await log_system_activity(
            activity_type=ActivityType.SYSTEM_STARTUP,
            action="startup",
            description=f"{settings.app_name} {settings.app_version} started",
        )
    except Exception as e:
        logger.warning("audit.startup.failed", error=str(e))

    logger.info("service.startup.complete")

    yield

    logger.info("service.shutdown.begin")

    # Let in-flight visitor notifications finish
    dispatcher = get_notification_dispatcher()
    await dispatcher.drain(timeout=SHUTDOWN_DRAIN_TIMEOUT)
    logger.info("notifications.drained", **dispatcher.stats)

    try:
        await log_system_activity(
            activity_type=ActivityType.SYSTEM_SHUTDOWN,
            action="shutdown",
            description=f"{settings.app_name} stopped",
        )
    except Exception as e:
        logger.warning("audit.shutdown.failed", error=str(e))

    await get_async_engine().dispose()
    logger.info("service.shutdown.complete")


def create_application() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Charity Platform Services",
        description="Visit tickets for approved help requests: issue, validate, redeem, cancel",
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/docs" if not settings.is_production else None,
        redoc_url="/redoc" if not settings.is_production else None,
    )

    logger = structlog.get_logger(__name__)

    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)
    logger.info("exception_handlers.registered")

    register_routers(app)

    # Health check endpoint (public)
    @app.get("/health")
    async def health_check() -> JSONResponse:
        """Health check endpoint for monitoring."""
        database_ok = await check_database_health()
        payload: dict[str, Any] = {
            "status": "healthy" if database_ok else "degraded",
            "version": settings.app_version,
            "environment": settings.environment.value,
            "database": "ok" if database_ok else "unavailable",
            "timestamp": datetime.now(UTC).isoformat(),
        }
        return JSONResponse(status_code=200 if database_ok else 503, content=payload)

    @app.get("/api")
    async def api_info() -> dict[str, Any]:
        """API info endpoint."""
        return get_api_info()

    return app


# Create application instance
app = create_application()


# For development server
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "charity.platform.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.is_development,
        log_level=settings.observability.log_level.value.lower(),
    )
