"""Tests for database models, the engine wrapper and the repositories."""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.pool import StaticPool

from app.database import Database, make_engine
from app.models.api_call_log import ApiCallLog
from app.models.base import as_utc
from app.models.cache_entry import CacheEntry
from app.models.user import User
from app.services.api_call_log import ApiCallLogRepository


class TestModels:
    def test_cache_entry_instance(self):
        expires = datetime(2026, 6, 1, tzinfo=timezone.utc)
        entry = CacheEntry(key="status", value="{}", expires_at=expires)
        assert entry.key == "status"
        assert entry.expires_at == expires

    def test_user_instance(self):
        user = User(name="Jane", email="jane@example.com", api_call_limit=1000)
        assert user.api_call_limit == 1000

    def test_api_call_log_instance(self):
        log = ApiCallLog(user_id=1, method="GET", endpoint="/api/status", status_code=200)
        assert log.endpoint == "/api/status"

    def test_as_utc_naive(self):
        naive = datetime(2026, 1, 1, 12, 0)
        assert as_utc(naive).tzinfo is timezone.utc

    def test_as_utc_aware_untouched(self):
        aware = datetime(2026, 1, 1, tzinfo=timezone(timedelta(hours=2)))
        assert as_utc(aware) is aware


class TestDatabase:
    def test_sqlite_uses_static_pool(self):
        engine = make_engine("sqlite+aiosqlite:///:memory:")
        assert isinstance(engine.pool, StaticPool)

    @pytest.mark.asyncio
    async def test_init_creates_tables(self):
        db = Database("sqlite+aiosqlite:///:memory:")
        assert await db.init() is True
        async with db.session() as session:
            session.add(CacheEntry(key="k", value="v"))
            await session.commit()
        await db.close()


class TestUserRepository:
    @pytest.mark.asyncio
    async def test_create_defaults(self, users):
        user = await users.create("Jane", " Jane@Example.com ")
        assert user.email == "jane@example.com"
        assert user.api_call_count == 0
        assert user.api_call_limit == 500
        assert user.api_key_version == 0
        assert user.verified is False

    @pytest.mark.asyncio
    async def test_find_by_email(self, users):
        user = await users.create("Jane", "jane@example.com")
        assert (await users.find_by_email("JANE@example.com")).id == user.id
        assert await users.find_by_email("nobody@example.com") is None

    @pytest.mark.asyncio
    async def test_find_verified_excludes_deleted(self, users):
        await users.create("A", "a@example.com", verified=True)
        await users.create("B", "b@example.com", verified=True, deleted=True)
        await users.create("C", "c@example.com")
        assert [u.email for u in await users.find_verified()] == ["a@example.com"]

    @pytest.mark.asyncio
    async def test_increments(self, users):
        user = await users.create("Jane", "jane@example.com")
        await users.increment_api_call_count(user.id)
        updated = await users.increment_api_call_count(user.id)
        assert updated.api_call_count == 2
        assert (await users.increment_api_key_version(user.id)).api_key_version == 1

    @pytest.mark.asyncio
    async def test_increment_unknown_user(self, users):
        assert await users.increment_api_call_count(999) is None

    @pytest.mark.asyncio
    async def test_set_api_call_count(self, users):
        user = await users.create("Jane", "jane@example.com")
        assert (await users.set_api_call_count(user.id, 42)).api_call_count == 42


class TestApiCallLogRepository:
    @pytest.mark.asyncio
    async def test_create_and_count(self, database, users):
        logs = ApiCallLogRepository(database.session_factory)
        user = await users.create("Jane", "jane@example.com")

        await logs.create(user.id, "GET", "/api/status", 200)
        await logs.create(user.id, "GET", "/api/rankings", 429)

        assert await logs.count(user.id) == 2
        assert await logs.count() == 2

    @pytest.mark.asyncio
    async def test_delete_older_than(self, database, users):
        logs = ApiCallLogRepository(database.session_factory)
        user = await users.create("Jane", "jane@example.com")
        await logs.create(user.id, "GET", "/api/status", 200)

        assert await logs.delete_older_than(datetime.now(timezone.utc) + timedelta(minutes=1)) == 1
        assert await logs.count() == 0
