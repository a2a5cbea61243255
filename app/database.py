"""Async database engine and session management.

Uses SQLAlchemy 2.0 async with asyncpg (PostgreSQL) or aiosqlite (tests).
"""

import logging

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)


def make_engine(database_url: str) -> AsyncEngine:
    """Create an engine with pool options suited to the backend."""
    if database_url.startswith("sqlite"):
        # In-memory SQLite must share one connection across sessions
        return create_async_engine(
            database_url,
            echo=False,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_async_engine(
        database_url,
        echo=False,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
    )


class Database:
    """Owns the engine and session factory for one process."""

    def __init__(self, database_url: str):
        self.url = database_url
        self.engine = make_engine(database_url)
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    def session(self) -> AsyncSession:
        return self.session_factory()

    async def init(self) -> bool:
        """Create tables if they don't exist. Returns True on success."""
        from app.models import Base  # noqa: F811

        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            logger.info("Database initialized successfully")
            return True
        except Exception as e:
            logger.error("Database initialization failed: %s", str(e)[:200])
            return False

    async def close(self):
        """Dispose engine connections on shutdown."""
        await self.engine.dispose()
        logger.info("Database connections closed")
