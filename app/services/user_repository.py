"""User repository — the quota and key-version counters live here.

Counter updates are single ``UPDATE ... SET col = col + 1`` statements so
concurrent calls from the same user never lose an increment.
"""

import logging

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.user import User

logger = logging.getLogger(__name__)


class UserRepository:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def find_by_id(self, user_id: int) -> User | None:
        async with self._session_factory() as session:
            return await session.get(User, user_id)

    async def find_by_email(self, email: str) -> User | None:
        async with self._session_factory() as session:
            result = await session.execute(select(User).where(User.email == email.lower().strip()))
            return result.scalars().first()

    async def find_verified(self) -> list[User]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(User).where(User.verified.is_(True), User.deleted.is_(False)).order_by(User.id)
            )
            return list(result.scalars().all())

    async def find_at_api_call_threshold(self, percent: int) -> list[User]:
        """Verified, non-admin users whose count is exactly ``percent``% of their limit."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(User)
                .where(
                    User.verified.is_(True),
                    User.deleted.is_(False),
                    User.admin.is_(False),
                    User.api_call_count == (User.api_call_limit * percent) // 100,
                )
                .order_by(User.id)
            )
            return list(result.scalars().all())

    async def create(self, name: str, email: str, **fields) -> User:
        user = User(name=name, email=email.lower().strip(), **fields)
        async with self._session_factory() as session:
            session.add(user)
            await session.commit()
            await session.refresh(user)
        logger.info("User created | id=%d", user.id)
        return user

    async def _increment(self, user_id: int, column) -> User | None:
        async with self._session_factory() as session:
            await session.execute(
                update(User).where(User.id == user_id).values({column: column + 1})
            )
            result = await session.execute(
                select(User).where(User.id == user_id).execution_options(populate_existing=True)
            )
            user = result.scalars().first()
            await session.commit()
            return user

    async def increment_api_call_count(self, user_id: int) -> User | None:
        return await self._increment(user_id, User.api_call_count)

    async def increment_api_key_version(self, user_id: int) -> User | None:
        return await self._increment(user_id, User.api_key_version)

    async def set_api_call_count(self, user_id: int, count: int) -> User | None:
        async with self._session_factory() as session:
            await session.execute(update(User).where(User.id == user_id).values(api_call_count=count))
            await session.commit()
        return await self.find_by_id(user_id)

    async def reset_all_api_call_counts(self) -> int:
        async with self._session_factory() as session:
            result = await session.execute(
                update(User).where(User.verified.is_(True), User.deleted.is_(False)).values(api_call_count=0)
            )
            await session.commit()
        return result.rowcount or 0
