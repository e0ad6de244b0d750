"""
Database connection management with SQLAlchemy async engine.

This module owns the process-wide async engine and session factory, the
transactional session context manager used by services, and the FastAPI
dependency that hands one session to each request.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy import text
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from printshop.core.config import get_settings
from printshop.core.logging import get_logger

logger = get_logger(__name__)

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


def _convert_database_url_to_async(url: str) -> str:
    """
    Convert PostgreSQL URL to async format.

    Args:
        url: Database connection URL

    Returns:
        Async-compatible database URL with asyncpg driver
    """
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


def create_engine(database_url: Optional[str] = None) -> AsyncEngine:
    """
    Create async SQLAlchemy engine.

    PostgreSQL engines get a sized connection pool; SQLite engines (used by
    the test suite) use the dialect defaults.

    Args:
        database_url: Override for the configured database URL

    Returns:
        Configured async SQLAlchemy engine
    """
    settings = get_settings()
    url = _convert_database_url_to_async(database_url or settings.database_url)

    if url.startswith("sqlite"):
        engine = create_async_engine(url, echo=settings.debug)
    elif settings.is_test:
        engine = create_async_engine(url, echo=settings.debug, poolclass=NullPool)
    else:
        engine = create_async_engine(
            url,
            echo=settings.debug,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=True,
            pool_recycle=3600,
            connect_args={
                "server_settings": {"application_name": settings.app_name},
                "command_timeout": 60,
                "timeout": 10,
            },
        )

    logger.info(
        "Database engine created",
        dialect=engine.dialect.name,
        pool_size=settings.db_pool_size,
        environment=settings.environment,
    )
    return engine


def get_engine() -> AsyncEngine:
    """
    Get or create the global async database engine.

    Raises:
        RuntimeError: If engine initialization fails
    """
    global _engine

    if _engine is None:
        try:
            _engine = create_engine()
        except (SQLAlchemyError, ValueError) as e:
            logger.error(
                "Failed to create database engine",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise RuntimeError(f"Database engine initialization failed: {e}") from e

    return _engine


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create a session factory bound to an engine."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get or create the global session factory."""
    global _session_factory

    if _session_factory is None:
        _session_factory = build_session_factory(get_engine())
        logger.info("Database session factory created")

    return _session_factory


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Create async database session with automatic cleanup.

    Commits when the block exits normally and rolls back on any exception.

    Yields:
        Async database session
    """
    session = get_session_factory()()

    try:
        yield session
        await session.commit()
    except BaseException as e:
        await session.rollback()
        logger.debug(
            "Database session rolled back",
            error=str(e),
            error_type=type(e).__name__,
        )
        raise
    finally:
        await session.close()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency for database session injection.

    Services control their own transactions; this dependency only commits
    whatever is still pending when the request finishes.

    Yields:
        Async database session for request handling
    """
    async with get_session() as session:
        yield session


async def check_database_health(max_retries: int = 3, retry_delay: float = 1.0) -> bool:
    """
    Check database connectivity with retry logic.

    Args:
        max_retries: Maximum number of connection attempts
        retry_delay: Base delay between retries in seconds

    Returns:
        True if database is healthy, False otherwise
    """
    for attempt in range(max_retries):
        try:
            async with get_engine().connect() as conn:
                await conn.execute(text("SELECT 1"))
            logger.debug("Database health check passed", attempt=attempt + 1)
            return True
        except OperationalError as e:
            logger.warning(
                "Database health check failed - operational error",
                attempt=attempt + 1,
                max_retries=max_retries,
                error=str(e),
            )
        except (SQLAlchemyError, RuntimeError, OSError) as e:
            logger.error(
                "Database health check failed",
                attempt=attempt + 1,
                max_retries=max_retries,
                error=str(e),
                error_type=type(e).__name__,
            )
        if attempt < max_retries - 1:
            await asyncio.sleep(retry_delay * (2**attempt))

    logger.error("Database health check failed after all retries", max_retries=max_retries)
    return False


async def close_database_connections() -> None:
    """
    Close all database connections and dispose of the engine.

    Called during application shutdown.
    """
    global _engine, _session_factory

    if _engine is not None:
        try:
            await _engine.dispose()
            logger.info("Database connections closed and engine disposed")
        finally:
            _engine = None
            _session_factory = None
