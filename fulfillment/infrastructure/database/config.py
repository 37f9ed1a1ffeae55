"""
Database configuration.

Manages database connection settings and engine creation.
"""
import logging
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

logger = logging.getLogger(__name__)


class DatabaseSettings(BaseSettings):
    """
    Database configuration settings.

    Loaded from environment variables or .env file.
    """

    model_config = SettingsConfigDict(env_file=".env", env_prefix="DB_", extra="ignore")

    # Database URL
    database_url: str = "sqlite+aiosqlite:///./fulfillment.db"

    # Connection pool settings (ignored for SQLite)
    pool_size: int = 10
    max_overflow: int = 20
    pool_timeout: int = 30
    pool_recycle: int = 3600  # 1 hour

    # Seconds a SQLite writer waits on a locked database
    sqlite_busy_timeout: int = 30

    # Echo SQL (for debugging)
    echo_sql: bool = False


# =============================================================================
# ENGINE CREATION
# =============================================================================

def create_engine(settings: Optional[DatabaseSettings] = None, url: Optional[str] = None) -> AsyncEngine:
    """
    Create async SQLAlchemy engine.

    Args:
        settings: Database settings (loaded from the environment if omitted)
        url: Explicit database URL overriding the settings

    Returns:
        Configured async engine
    """
    settings = settings or DatabaseSettings()
    database_url = url or settings.database_url
    logger.info(f"Creating database engine: {database_url.split('@')[-1]}")

    if database_url.startswith("sqlite"):
        return create_async_engine(
            database_url,
            echo=settings.echo_sql,
            connect_args={"timeout": settings.sqlite_busy_timeout},
        )

    return create_async_engine(
        database_url,
        echo=settings.echo_sql,
        pool_size=settings.pool_size,
        max_overflow=settings.max_overflow,
        pool_timeout=settings.pool_timeout,
        pool_recycle=settings.pool_recycle,
        pool_pre_ping=True,  # Test connections before using
    )


# Global engine instance
engine: Optional[AsyncEngine] = None


def get_engine() -> AsyncEngine:
    """
    Get or create global engine instance.

    Returns:
        Global async engine
    """
    global engine

    if engine is None:
        engine = create_engine()

    return engine


# =============================================================================
# SESSION FACTORY
# =============================================================================

def build_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    """
    Build a session factory for an engine.

    Returns:
        Session factory for creating sessions
    """
    return async_sessionmaker(
        bind=bind,
        expire_on_commit=False,
        autoflush=False,
    )


def get_session_factory() -> async_sessionmaker:
    """Session factory bound to the global engine."""
    return build_session_factory(get_engine())


# =============================================================================
# DATABASE INITIALIZATION
# =============================================================================

async def init_database(bind: Optional[AsyncEngine] = None) -> None:
    """
    Initialize database.

    Creates all tables if they don't exist.
    """
    from fulfillment.data.models import Base

    logger.info("Initializing database...")

    bind = bind or get_engine()
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.info("Database initialized successfully")


async def close_database() -> None:
    """Close database connections."""
    global engine

    if engine:
        logger.info("Closing database connections...")
        await engine.dispose()
        engine = None
        logger.info("Database connections closed")
