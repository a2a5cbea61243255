"""Cache refresher — keeps live cache keys warm without waiting for client misses.

One refresh cycle:
  1. list every live key in the cache store
  2. decode each key; internal, unknown and invalid keys are skipped
  3. re-fetch decodable keys upstream (html or json per kind) and overwrite
     the entry with that kind's TTL
  4. one key failing never stops the cycle; failures are collected
  5. log a summary (total, successful, failed, skipped, duration, failures)

Keys are refreshed one at a time with a fixed delay between upstream
requests. Cycles never overlap: a trigger that fires while a cycle is
running is skipped.
"""

import asyncio
import json
import logging
import time
from collections.abc import Awaitable, Callable

from app.config import Settings
from app.orchestrator.router import ResourceRouter, ttl_for
from app.orchestrator.schemas import RefreshSummary
from app.services.cache import CacheStore
from app.services.key_codec import KeyOutcome, decode

logger = logging.getLogger(__name__)


class CacheRefresher:
    """Sequential, non-overlapping refresh of every decodable cache key."""

    def __init__(
        self,
        cache: CacheStore,
        router: ResourceRouter,
        settings: Settings,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.cache = cache
        self.router = router
        self.settings = settings
        self._sleep = sleep
        self._lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    async def refresh_cache(self) -> RefreshSummary | None:
        """Run one cycle. Returns None when a cycle is already in progress."""
        if self._lock.locked():
            logger.warning("Cache refresh skipped | previous cycle still running")
            return None

        async with self._lock:
            return await self._run_cycle()

    async def _run_cycle(self) -> RefreshSummary:
        start = time.monotonic()
        logger.info("Cache refresh started")

        keys = await self.cache.keys("%")
        summary = RefreshSummary(total=len(keys))
        fetched = False

        for key in keys:
            result = decode(key)
            if result.outcome is not KeyOutcome.OK:
                summary.skipped += 1
                level = logging.DEBUG if result.outcome is KeyOutcome.SKIPPED else logging.WARNING
                logger.log(level, "Cache refresh skip | key=%s | %s | %s", key, result.outcome.value, result.reason)
                continue

            if fetched and self.settings.refresh_delay_seconds > 0:
                await self._sleep(self.settings.refresh_delay_seconds)
            fetched = True

            descriptor = result.descriptor
            try:
                data = await asyncio.wait_for(
                    self.router.fetch(descriptor),
                    timeout=self.settings.upstream_timeout_seconds * 2,
                )
                await self.cache.set(key, json.dumps(data, ensure_ascii=False), ttl_for(descriptor.kind, self.settings))
                summary.successful += 1
            except Exception as e:
                error = str(e) or type(e).__name__
                summary.failed += 1
                path = self.router.request_path(descriptor)
                summary.failed_endpoints.append({"key": key, "path": path, "error": error})
                logger.error("Cache refresh failed | key=%s | path=%s | %s", key, path, error[:200])

        summary.duration_ms = int((time.monotonic() - start) * 1000)
        logger.info(
            "Cache refresh completed | total=%d | successful=%d | failed=%d | skipped=%d | %dms | failed_endpoints=%s",
            summary.total, summary.successful, summary.failed, summary.skipped, summary.duration_ms,
            [f["key"] for f in summary.failed_endpoints],
        )
        return summary
