"""
Database configuration and session management.
Uses SQLAlchemy 2.0 with async support.
"""

from typing import AsyncGenerator, Optional
from contextlib import asynccontextmanager

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
    AsyncEngine
)

from .config import settings, DatabaseConfig
from .logging import get_logger

logger = get_logger(__name__)

# Global engine and session maker
async_engine: Optional[AsyncEngine] = None
async_session_maker: Optional[async_sessionmaker[AsyncSession]] = None


async def init_database(url: Optional[str] = None, **engine_kwargs) -> None:
    """
    Initialize database connections and session makers.

    Args:
        url: Database URL, defaults to settings.database_url
        engine_kwargs: Extra keyword arguments for create_async_engine
    """
    global async_engine, async_session_maker

    logger.info("Initializing database connections")

    engine_config = DatabaseConfig.get_engine_config(url)
    engine_config.update(engine_kwargs)

    async_engine = create_async_engine(
        DatabaseConfig.get_database_url(url, async_driver=True),
        **engine_config,
        echo=settings.debug
    )

    async_session_maker = async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False
    )

    logger.info("Database connections initialized")


async def close_database() -> None:
    """Close database connections."""
    global async_engine, async_session_maker

    logger.info("Closing database connections")

    if async_engine:
        await async_engine.dispose()

    async_engine = None
    async_session_maker = None

    logger.info("Database connections closed")


def get_session_maker() -> async_sessionmaker[AsyncSession]:
    """Return the initialized session maker."""
    if not async_session_maker:
        raise RuntimeError("Database not initialized. Call init_database() first.")
    return async_session_maker


@asynccontextmanager
async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Get an async database session with automatic cleanup.

    Usage:
        async with get_async_session() as session:
            # Use session here
            pass
    """
    async with get_session_maker()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


class DatabaseManager:
    """Database manager for administrative operations."""

    @staticmethod
    async def create_tables() -> None:
        """Create all tables in the database."""
        from invest_platform.models.base import Base
        import invest_platform.models  # noqa: F401  registers all tables

        if not async_engine:
            raise RuntimeError("Database not initialized")

        logger.info("Creating database tables")
        async with async_engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created")

    @staticmethod
    async def drop_tables() -> None:
        """Drop all tables in the database."""
        from invest_platform.models.base import Base
        import invest_platform.models  # noqa: F401

        if not async_engine:
            raise RuntimeError("Database not initialized")

        logger.warning("Dropping all database tables")
        async with async_engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        logger.info("Database tables dropped")

    @staticmethod
    async def health_check() -> bool:
        """Check database connectivity."""
        try:
            async with get_async_session() as session:
                await session.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error("Database health check failed", error=str(e))
            return False
