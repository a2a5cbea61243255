"""Cache store backed by the ``cache`` table.

Every entry is a serialized string under an opaque key, with an optional
expiry. An expired row is treated as a miss and deleted lazily on read.
Patterns use SQL LIKE wildcards (``%`` = any run of characters).

There is no in-memory layer: every call round-trips to the database.
"""

import logging
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import delete, func, or_, select, text
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.base import as_utc, utcnow
from app.models.cache_entry import CacheEntry

logger = logging.getLogger(__name__)

ORDERABLE_COLUMNS = {"key", "created_at", "updated_at", "expires_at"}


class CacheStore:
    """Async key/value store with TTL over SQLAlchemy."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    def _live(self, now: datetime):
        return or_(CacheEntry.expires_at.is_(None), CacheEntry.expires_at > now)

    def _insert(self, dialect: str):
        if dialect == "postgresql":
            return postgresql.insert(CacheEntry)
        return sqlite.insert(CacheEntry)

    async def get(self, key: str) -> str | None:
        """Read from cache. Returns None on miss or expiry."""
        async with self._session_factory() as session:
            entry = await session.get(CacheEntry, key)
            if entry is None:
                return None

            now = utcnow()
            if entry.expires_at is not None and as_utc(entry.expires_at) <= now:
                # a concurrent upsert may have refreshed the row since it was read
                await session.execute(
                    delete(CacheEntry).where(
                        CacheEntry.key == key,
                        CacheEntry.expires_at.is_not(None),
                        CacheEntry.expires_at <= now,
                    )
                )
                await session.commit()
                logger.info("Cache EXPIRED | key=%s", key)
                return None

            return entry.value

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        """Upsert a value. Without ``ttl_seconds`` the entry never expires."""
        now = utcnow()
        expires_at = now + timedelta(seconds=ttl_seconds) if ttl_seconds else None

        async with self._session_factory() as session:
            stmt = self._insert(session.bind.dialect.name).values(
                key=key, value=value, expires_at=expires_at, created_at=now, updated_at=now,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=[CacheEntry.key],
                set_={"value": value, "expires_at": expires_at, "updated_at": now},
            )
            await session.execute(stmt)
            await session.commit()

        logger.info("Cache SET | key=%s | ttl=%s", key, f"{ttl_seconds}s" if ttl_seconds else "none")

    async def delete(self, key: str) -> None:
        async with self._session_factory() as session:
            await session.execute(delete(CacheEntry).where(CacheEntry.key == key))
            await session.commit()

    async def delete_pattern(self, pattern: str) -> int:
        """Delete every key matching ``pattern``. Returns the number removed."""
        async with self._session_factory() as session:
            result = await session.execute(delete(CacheEntry).where(CacheEntry.key.like(pattern)))
            await session.commit()
        count = result.rowcount or 0
        logger.info("Cache invalidated %d keys matching '%s'", count, pattern)
        return count

    async def keys(self, pattern: str = "%") -> list[str]:
        """List live keys matching ``pattern``."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(CacheEntry.key)
                .where(CacheEntry.key.like(pattern), self._live(utcnow()))
                .order_by(CacheEntry.key)
            )
            return list(result.scalars().all())

    async def clear_expired(self) -> int:
        async with self._session_factory() as session:
            result = await session.execute(
                delete(CacheEntry).where(
                    CacheEntry.expires_at.is_not(None), CacheEntry.expires_at <= utcnow(),
                )
            )
            await session.commit()
        count = result.rowcount or 0
        logger.info("Cleared %d expired cache entries", count)
        return count

    async def clear_all(self) -> None:
        async with self._session_factory() as session:
            await session.execute(delete(CacheEntry))
            await session.commit()
        logger.info("Cleared all cache entries")

    async def is_ready(self) -> bool:
        """Liveness probe. Never raises."""
        try:
            async with self._session_factory() as session:
                await session.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.warning("Cache store not ready: %s", str(e)[:100])
            return False

    async def get_statistics(self) -> dict[str, Any]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(CacheEntry.key, CacheEntry.created_at, CacheEntry.updated_at)
            )
            rows = result.all()

        patterns: dict[str, int] = {}
        for row in rows:
            prefix = row.key.split("-")[0] or "other"
            patterns[prefix] = patterns.get(prefix, 0) + 1

        return {
            "total_entries": len(rows),
            "oldest_entry": min((as_utc(r.created_at) for r in rows), default=None),
            "newest_entry": max((as_utc(r.updated_at) for r in rows), default=None),
            "key_patterns": [{"pattern": p, "count": c} for p, c in patterns.items()],
        }

    async def get_entries(
        self,
        pattern: str = "%",
        order_by: str | None = None,
        order: str = "asc",
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[CacheEntry]:
        stmt = select(CacheEntry).where(CacheEntry.key.like(pattern))
        if order_by:
            if order_by not in ORDERABLE_COLUMNS:
                raise ValueError(f"Cannot order cache entries by {order_by!r}")
            column = getattr(CacheEntry, order_by)
            stmt = stmt.order_by(column.desc() if order == "desc" else column.asc())
        if limit is not None:
            stmt = stmt.limit(limit)
        if offset is not None:
            stmt = stmt.offset(offset)

        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def count_entries(self, pattern: str = "%") -> int:
        async with self._session_factory() as session:
            result = await session.execute(
                select(func.count()).select_from(CacheEntry).where(CacheEntry.key.like(pattern))
            )
            return int(result.scalar_one())
