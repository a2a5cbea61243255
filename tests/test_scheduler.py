"""Tests for the cron service and its jobs."""

import pytest

from app.orchestrator.router import ResourceRouter
from app.services.key_codec import GLOBAL_STATUS_KEY
from app.services.quota import QuotaTracker
from app.services.refresher import CacheRefresher
from app.services.scheduler import CronService


class ExplodingRefresher:
    async def refresh_cache(self):
        raise RuntimeError("boom")


@pytest.fixture
def quota(users, mailer, settings):
    return QuotaTracker(users, mailer, settings)


@pytest.fixture
def cron(cache_store, scraper, quota, settings):
    refresher = CacheRefresher(cache_store, ResourceRouter(scraper), settings)
    service = CronService(cache_store, refresher, quota, settings)
    yield service
    service.stop()


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_start_registers_jobs(self, cron):
        assert cron.get_status() == {"is_running": False, "job_count": 0}

        cron.start()

        assert cron.get_status() == {"is_running": True, "job_count": 4}

    @pytest.mark.asyncio
    async def test_start_twice_is_idempotent(self, cron):
        cron.start()
        cron.start()
        assert cron.get_status()["job_count"] == 4

    @pytest.mark.asyncio
    async def test_stop(self, cron):
        cron.start()
        cron.stop()
        assert cron.get_status() == {"is_running": False, "job_count": 0}

    @pytest.mark.asyncio
    async def test_restart(self, cron):
        cron.start()
        cron.stop()
        cron.start()
        assert cron.get_status()["is_running"] is True

    @pytest.mark.asyncio
    async def test_refresh_job_never_overlaps(self, cron):
        cron.start()
        job = cron._scheduler.get_job("refresh_cache")
        assert job.max_instances == 1
        assert job.coalesce is True


class TestJobs:
    @pytest.mark.asyncio
    async def test_remove_caches(self, cron, cache_store):
        await cache_store.set(GLOBAL_STATUS_KEY, "[]", 86400)
        await cache_store.set("close-powerlifting-hostname", "h")
        await cache_store.set("status", "{}", 3600)

        await cron.remove_caches()

        assert await cache_store.keys() == ["status"]

    @pytest.mark.asyncio
    async def test_refresh_failure_is_contained(self, cache_store, quota, settings):
        cron = CronService(cache_store, ExplodingRefresher(), quota, settings)
        await cron.refresh_cache()

    @pytest.mark.asyncio
    async def test_reaching_limit_job(self, cron, users, mailer):
        await users.create("At", "at@example.com", verified=True, api_call_limit=10, api_call_count=7)
        await cron.send_reaching_api_limit_emails()
        assert len(mailer.sent) == 1
