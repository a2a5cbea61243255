"""Cron service using APScheduler.

Jobs (UTC):
  refresh_cache                    every ``refresh_interval_seconds``
  remove_caches                    Sundays at midnight
  send_reaching_api_limit_emails   daily at midnight
  reset_api_call_counts            daily at midnight (acts on the 1st only)

Every job catches and logs its own failure.
"""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from app.config import Settings
from app.services.cache import CacheStore
from app.services.key_codec import INTERNAL_PREFIX
from app.services.quota import QuotaTracker
from app.services.refresher import CacheRefresher

logger = logging.getLogger(__name__)


class CronService:
    def __init__(
        self,
        cache: CacheStore,
        refresher: CacheRefresher,
        quota: QuotaTracker,
        settings: Settings,
    ):
        self.cache = cache
        self.refresher = refresher
        self.quota = quota
        self.settings = settings
        self._scheduler: AsyncIOScheduler | None = None

    # ── Tasks ───────────────────────────────────────────────────────

    async def refresh_cache(self) -> None:
        try:
            await self.refresher.refresh_cache()
        except Exception:
            logger.exception("cron job failed: refresh_cache")

    async def remove_caches(self) -> None:
        try:
            logger.info("cron job started: remove_caches")
            deleted = await self.cache.delete_pattern(f"{INTERNAL_PREFIX}%")
            logger.info("deleted %d cache entries", deleted)
            await self.cache.clear_expired()
            logger.info("cron job completed: remove_caches")
        except Exception:
            logger.exception("cron job failed: remove_caches")

    async def send_reaching_api_limit_emails(self) -> None:
        try:
            await self.quota.send_reaching_api_limit_emails()
        except Exception:
            logger.exception("cron job failed: send_reaching_api_limit_emails")

    async def reset_api_call_counts(self) -> None:
        try:
            await self.quota.reset_api_call_counts()
        except Exception:
            logger.exception("cron job failed: reset_api_call_counts")

    # ── Lifecycle ───────────────────────────────────────────────────

    def start(self) -> None:
        """Register all jobs and start the scheduler if not already running."""
        if self._scheduler is not None and self._scheduler.running:
            return

        scheduler = AsyncIOScheduler(timezone="UTC")
        scheduler.add_job(
            self.refresh_cache,
            trigger=IntervalTrigger(seconds=self.settings.refresh_interval_seconds),
            id="refresh_cache",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        scheduler.add_job(
            self.remove_caches,
            trigger=CronTrigger(day_of_week="sun", hour=0, minute=0, timezone="UTC"),
            id="remove_caches",
            replace_existing=True,
        )
        scheduler.add_job(
            self.send_reaching_api_limit_emails,
            trigger=CronTrigger(hour=0, minute=0, timezone="UTC"),
            id="send_reaching_api_limit_emails",
            replace_existing=True,
        )
        scheduler.add_job(
            self.reset_api_call_counts,
            trigger=CronTrigger(hour=0, minute=0, timezone="UTC"),
            id="reset_api_call_counts",
            replace_existing=True,
        )
        scheduler.start()
        self._scheduler = scheduler
        logger.info("[Scheduler] Started | jobs=%d", len(scheduler.get_jobs()))

    def stop(self) -> None:
        if self._scheduler is not None and self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("[Scheduler] Shutdown")
        self._scheduler = None

    def get_status(self) -> dict:
        running = self._scheduler is not None and self._scheduler.running
        return {
            "is_running": running,
            "job_count": len(self._scheduler.get_jobs()) if running else 0,
        }
