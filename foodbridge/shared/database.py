"""
Database configuration and utilities for FoodBridge
Includes async engine setup, session management, and helper functions
"""

import os
import time
import logging
from typing import AsyncGenerator, Optional
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    AsyncEngine,
    create_async_engine,
    async_sessionmaker
)
from sqlalchemy import text
from sqlalchemy.pool import NullPool

from .models import Base

logger = logging.getLogger(__name__)


# ============================================================================
# DATABASE URL CONFIGURATION
# ============================================================================

def get_database_url() -> str:
    """
    Construct database URL from environment variables

    Supports:
    - Direct DATABASE_URL (priority), including sqlite+aiosqlite for development
    - Component-based (DB_HOST, DB_PORT, etc.)
    """
    database_url = os.getenv("DATABASE_URL")
    if database_url:
        # Convert postgres:// to postgresql+asyncpg:// for async support
        if database_url.startswith("postgres://"):
            database_url = database_url.replace("postgres://", "postgresql+asyncpg://", 1)
        elif database_url.startswith("postgresql://"):
            database_url = database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
        return database_url

    DB_USER = os.getenv("DB_USER", "postgres")
    DB_PASSWORD = os.getenv("DB_PASSWORD", "postgres")
    DB_HOST = os.getenv("DB_HOST", "localhost")
    DB_PORT = os.getenv("DB_PORT", "5432")
    DB_NAME = os.getenv("DB_NAME", "foodbridge")

    return f"postgresql+asyncpg://{DB_USER}:{DB_PASSWORD}@{DB_HOST}:{DB_PORT}/{DB_NAME}"


# ============================================================================
# ENGINE CONFIGURATION
# ============================================================================

def create_database_engine(
    url: Optional[str] = None,
    pool_size: int = 20,
    max_overflow: int = 40,
    echo: bool = False,
    command_timeout: int = 30,
) -> AsyncEngine:
    """
    Create async database engine

    Args:
        url: Database URL (defaults to get_database_url())
        pool_size: Number of permanent connections (PostgreSQL only)
        max_overflow: Additional connections on demand (PostgreSQL only)
        echo: Log all SQL queries
        command_timeout: Upper bound in seconds for a single statement

    Returns:
        AsyncEngine for the configured backend
    """
    if url is None:
        url = get_database_url()

    if url.startswith("sqlite"):
        # One connection per session; sqlite serialises writers with its busy timeout
        return create_async_engine(
            url,
            poolclass=NullPool,
            echo=echo,
            connect_args={"timeout": command_timeout},
        )

    if os.getenv("TESTING") == "true":
        return create_async_engine(url, poolclass=NullPool, echo=echo)

    return create_async_engine(
        url,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=True,
        pool_recycle=3600,
        echo=echo,
        connect_args={
            "server_settings": {
                "application_name": "foodbridge_api",
                "timezone": "UTC",
            },
            "command_timeout": command_timeout,
            "timeout": 10,
        },
    )


# ============================================================================
# GLOBAL ENGINE & SESSION FACTORY
# ============================================================================

engine: AsyncEngine = create_database_engine(
    pool_size=int(os.getenv("DATABASE_POOL_SIZE", "20")),
    max_overflow=int(os.getenv("DATABASE_MAX_OVERFLOW", "40")),
    echo=os.getenv("DATABASE_ECHO", "false").lower() == "true",
    command_timeout=int(os.getenv("DATABASE_COMMAND_TIMEOUT", "30")),
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


# ============================================================================
# SESSION MANAGEMENT
# ============================================================================

async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency to get database session

    Usage:
        @router.get("/donations")
        async def list_donations(session: AsyncSession = Depends(get_session)):
            ...
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


@asynccontextmanager
async def get_session_context() -> AsyncGenerator[AsyncSession, None]:
    """
    Context manager for database session (for non-FastAPI code)

    Usage:
        async with get_session_context() as session:
            session.add(notification)
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


# ============================================================================
# DATABASE LIFECYCLE
# ============================================================================

async def init_database() -> None:
    """
    Create the schema (development and tests only; production uses migrations)
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("✅ Database schema initialized")


async def drop_database() -> None:
    """
    Drop all tables (for testing only)

    WARNING: This will DELETE ALL DATA!
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    logger.warning("⚠️ Database schema dropped")


async def close_database() -> None:
    """Close database connections (call on app shutdown)"""
    await engine.dispose()
    logger.info("✅ Database connections closed")


# ============================================================================
# HEALTH CHECK
# ============================================================================

async def check_database_health() -> dict:
    """
    Check database connectivity and return health metrics

    Returns:
        {
            "status": "healthy" | "unhealthy",
            "dialect": "postgresql",
            "response_time_ms": 15.3
        }
    """
    try:
        start_time = time.time()

        async with AsyncSessionLocal() as session:
            await session.execute(text("SELECT 1"))

        response_time_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "dialect": engine.dialect.name,
            "response_time_ms": round(response_time_ms, 2),
        }

    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return {
            "status": "unhealthy",
            "error": str(e),
        }


# ============================================================================
# TESTING UTILITIES
# ============================================================================

async def reset_database_for_testing() -> None:
    """
    Drop and recreate all tables (for integration tests)

    Usage:
        @pytest.fixture(autouse=True)
        async def reset_db():
            await reset_database_for_testing()
    """
    await drop_database()
    await init_database()


__all__ = [
    # Engine & Session
    "engine",
    "AsyncSessionLocal",
    "get_session",
    "get_session_context",

    # Lifecycle
    "init_database",
    "drop_database",
    "close_database",

    # Health
    "check_database_health",

    # Testing
    "reset_database_for_testing",
]
