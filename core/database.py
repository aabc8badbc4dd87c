"""
Database Management and Configuration.

This module sets up the asynchronous database connection for the FollowTrain
API. It uses SQLAlchemy with `asyncio` support and SQLModel for the table
definitions.

Key Components:
- `build_engine`: creates an async engine for a database URL. SQLite (via
  `aiosqlite`) is used for development and tests, PostgreSQL (via `asyncpg`)
  in production.
- `engine` / `async_session`: the process-wide engine and session factory,
  configured from `DATABASE_URL`.
- `create_db_and_tables`: startup hook creating every SQLModel table.
- `get_database_info`: diagnostic query used by the detailed health check.
"""

import logging
from typing import Any, Dict

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import AsyncAdaptedQueuePool, NullPool, StaticPool
from sqlmodel import SQLModel

from core.config import get_settings
from core import models  # noqa: F401 - registers tables with SQLModel.metadata

logger = logging.getLogger(__name__)


def build_engine(database_url: str, **kwargs: Any) -> AsyncEngine:
    """Create an async engine with pool settings suited to the backend"""
    if database_url.startswith("sqlite"):
        options: Dict[str, Any] = {
            "connect_args": {"check_same_thread": False},
            "echo": False,
        }
        if ":memory:" in database_url:
            # every connection to :memory: is a fresh database
            options["poolclass"] = StaticPool
        else:
            # file connections are cheap and must not outlive their event loop
            options["poolclass"] = NullPool
    else:
        options = {
            "poolclass": AsyncAdaptedQueuePool,
            "pool_size": 5,
            "max_overflow": 10,
            "pool_pre_ping": True,
            "echo": False,
        }
    options.update(kwargs)
    return create_async_engine(database_url, **options)


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
    bind = bind or engine
    try:
        async with bind.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)
        logger.info("FollowTrain database tables created successfully")
    except Exception as e:
        logger.error(f"Failed to create FollowTrain database tables: {e}")
        raise


def _masked_url(url: str) -> str:
    # Hide credentials
    return url.split("@")[1] if "@" in url else "masked"


async def get_database_info(session_factory: async_sessionmaker = None) -> Dict[str, Any]:
    """
    Get basic database information for health checks.
    """
    session_factory = session_factory or async_session
    try:
        async with session_factory() as session:
            result = await session.execute(text("SELECT COUNT(*) FROM trains"))
            train_rows = result.scalar()
        connection_healthy = True
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        connection_healthy = False
        train_rows = None

    return {
        "database_url": _masked_url(DATABASE_URL),
        "connection_healthy": connection_healthy,
        "database_type": "postgresql" if "postgresql" in DATABASE_URL else "sqlite",
        "train_rows": train_rows,
    }
