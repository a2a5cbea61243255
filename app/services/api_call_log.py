"""ApiCallLog repository — append-only audit rows for tracked API calls."""

import logging
from datetime import datetime

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.api_call_log import ApiCallLog

logger = logging.getLogger(__name__)


class ApiCallLogRepository:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def create(self, user_id: int, method: str, endpoint: str, status_code: int) -> None:
        async with self._session_factory() as session:
            session.add(ApiCallLog(
                user_id=user_id, method=method, endpoint=endpoint[:2048], status_code=status_code,
            ))
            await session.commit()

    async def count(self, user_id: int | None = None) -> int:
        stmt = select(func.count()).select_from(ApiCallLog)
        if user_id is not None:
            stmt = stmt.where(ApiCallLog.user_id == user_id)
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return int(result.scalar_one())

    async def delete_older_than(self, cutoff: datetime) -> int:
        async with self._session_factory() as session:
            result = await session.execute(delete(ApiCallLog).where(ApiCallLog.created_at < cutoff))
            await session.commit()
        count = result.rowcount or 0
        logger.info("Deleted %d api call logs older than %s", count, cutoff.isoformat())
        return count
