"""
Database Management and Configuration.

This module is responsible for setting up and managing the asynchronous database
connection that stores generated roasts. It uses SQLAlchemy with `asyncio`
support and SQLModel for data modeling.

Key Components:
- `engine`: The core SQLAlchemy async engine, configured from
  `Settings.database_url`. It supports SQLite (via `aiosqlite`, the default)
  and PostgreSQL (via `asyncpg`).
- `async_session`: An asynchronous session factory. `RoastStore` opens one
  session per operation from it.
- `create_db_and_tables`: A startup function that creates all tables from the
  SQLModel metadata.
- `get_database_info`: A health check helper that reports connectivity.

Architectural Design:
- Asynchronous Operations: All queries are awaited so the event loop is never
  blocked while the pipeline waits on storage.
- Environment-Driven Configuration: The connection URL comes from settings,
  so tests and deployments point at different databases without code changes.
"""

import logging
from sqlalchemy import text
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncEngine
from sqlalchemy.pool import NullPool, StaticPool
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from .config import get_settings

logger = logging.getLogger(__name__)


def build_engine(database_url: str) -> AsyncEngine:
    """Create an async engine suited to the database type"""
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}, "echo": False}
        if ":memory:" in database_url:
            # One shared connection, otherwise every checkout sees an empty database
            kwargs["poolclass"] = StaticPool
        else:
            # Connections are not reused across event loops
            kwargs["poolclass"] = NullPool
        return create_async_engine(database_url, **kwargs)

    return create_async_engine(
        database_url,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,  # Validate connections before use
        echo=False,
    )


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


DATABASE_URL = get_settings().database_url

engine = build_engine(DATABASE_URL)

async_session = build_session_factory(engine)


async def create_db_and_tables(bind: AsyncEngine = None):
    """
    Initialize the database and create all tables.
    Called during application startup.
    """
    try:
        async with (bind or engine).begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)
        logger.info("Roast API database tables created successfully")
    except Exception as e:
        logger.error(f"Failed to create Roast API database tables: {e}")
        raise


async def get_database_info():
    """
    Get basic database information for health checks.
    """
    try:
        async with engine.connect() as conn:
            result = await conn.execute(text("SELECT 1"))
            result.scalar()
            connection_healthy = True
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        connection_healthy = False

    return {
        "database_url": DATABASE_URL.split("@")[1]
        if "@" in DATABASE_URL
        else "masked",  # Hide credentials
        "connection_healthy": connection_healthy,
        "database_type": "postgresql" if "postgresql" in DATABASE_URL else "sqlite",
    }
