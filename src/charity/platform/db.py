"""
SQLAlchemy 2.0 Database Configuration

Standard async SQLAlchemy setup shared by every domain package.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from urllib.parse import quote_plus

import structlog
from sqlalchemy import DateTime, text
from sqlalchemy import Enum as SAEnum
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from charity.platform.settings import settings

logger = structlog.get_logger(__name__)

# ==========================================
# Database URLs from settings
# ==========================================


def get_database_url() -> str:
    """Get the sync database URL from settings."""
    if settings.database.url:
        return str(settings.database.url)

    # In development and tests, use SQLite if PostgreSQL is not configured
    if (settings.is_development or settings.is_testing) and not settings.database.password:
        return "sqlite:///./charity_dev.sqlite"

    # URL-encode credentials to handle special characters safely
    username = quote_plus(settings.database.username)
    password = quote_plus(settings.database.password) if settings.database.password else ""
    host = settings.database.host
    port = settings.database.port
    database = settings.database.database

    return f"postgresql://{username}:{password}@{host}:{port}/{database}"


def get_async_database_url() -> str:
    """Get the async database URL from settings."""
    sync_url = get_database_url()
    # Convert to async driver
    if sync_url.startswith("postgresql://"):
        return sync_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    elif sync_url.startswith("sqlite://"):
        return sync_url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return sync_url


# ==========================================
# SQLAlchemy 2.0 Declarative Base
# ==========================================


class Base(DeclarativeBase):
    """Base class for all database models using SQLAlchemy 2.0 declarative mapping."""

    pass


# ==========================================
# Common Mixins
# ==========================================


class TimestampMixin:
    """Adds created_at and updated_at timestamps to models."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )


def enum_column_type(enum_cls: type[Enum]) -> SAEnum:
    """Store a str Enum by value in a VARCHAR, rejecting unknown values."""
    return SAEnum(
        enum_cls,
        native_enum=False,
        length=32,
        values_callable=lambda members: [member.value for member in members],
        validate_strings=True,
    )


# ==========================================
# Engine and Session Management
# ==========================================

# Lazy initialization
_async_engine: AsyncEngine | None = None


def _engine_options(url: str) -> dict[str, Any]:
    options: dict[str, Any] = {"echo": settings.database.echo}
    # SQLite uses a single-connection pool that rejects sizing arguments
    if not url.startswith("sqlite"):
        options.update(
            pool_size=settings.database.pool_size,
            max_overflow=settings.database.max_overflow,
            pool_timeout=settings.database.pool_timeout,
            pool_recycle=settings.database.pool_recycle,
            pool_pre_ping=settings.database.pool_pre_ping,
        )
    return options


def get_async_engine() -> AsyncEngine:
    """Get or create the asynchronous engine."""
    global _async_engine
    if _async_engine is None:
        url = get_async_database_url()
        _async_engine = create_async_engine(url, **_engine_options(url))
    return _async_engine


AsyncSessionLocal = async_sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=get_async_engine(),
    class_=AsyncSession,
    expire_on_commit=False,
)

# Global variable to hold the session maker (can be overridden for testing)
_async_session_maker = AsyncSessionLocal


# ==========================================
# Session Context Managers
# ==========================================


@asynccontextmanager
async def get_async_db() -> AsyncIterator[AsyncSession]:
    """Get an asynchronous database session that commits on success."""
    async with _async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_async_session() -> AsyncIterator[AsyncSession]:
    """FastAPI dependency for getting an async database session."""
    async with _async_session_maker() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


# ==========================================
# Database Initialization
# ==========================================


def _load_models() -> None:
    # Importing the model modules registers their tables on Base.metadata
    from charity.platform.assistance import models as _assistance  # noqa: F401
    from charity.platform.audit import models as _audit  # noqa: F401
    from charity.platform.tickets import models as _tickets  # noqa: F401


async def create_all_tables_async() -> None:
    """Create all tables in the database asynchronously."""
    _load_models()
    engine = get_async_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("database.tables.created", tables=sorted(Base.metadata.tables))


async def drop_all_tables_async() -> None:
    """Drop all tables from the database asynchronously. Use with caution!"""
    _load_models()
    engine = get_async_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


# ==========================================
# Health Check
# ==========================================


async def check_database_health() -> bool:
    """Check if the database is accessible."""
    try:
        async with get_async_db() as session:
            await session.execute(text("SELECT 1"))
        return True
    except Exception as exc:
        logger.warning("database.health_check.failed", error=str(exc))
        return False


__all__ = [
    # Base classes
    "Base",
    # Mixins
    "TimestampMixin",
    "enum_column_type",
    # Session management
    "get_async_db",
    "get_async_session",
    # Engines
    "get_async_engine",
    "get_database_url",
    "get_async_database_url",
    # Session factories
    "AsyncSessionLocal",
    # Database operations
    "create_all_tables_async",
    "drop_all_tables_async",
    "check_database_health",
]
