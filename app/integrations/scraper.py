"""openpowerlifting.org scraper — HTML pages and the rankings JSON API.

Every request carries a fixed header set: upstream varies units by cookie,
so the units cookie is always explicit.
"""

import asyncio
import json
import logging
import math
import re
import time
from collections.abc import Awaitable, Callable
from typing import Any

import httpx
from bs4 import BeautifulSoup, Tag

from app.config import Settings
from app.orchestrator.schemas import CachedResult, Pagination
from app.services.cache import CacheStore

logger = logging.getLogger(__name__)

DEFAULT_CACHE_TTL = 3600


class UpstreamFetchError(Exception):
    """Non-2xx response from the upstream site."""

    def __init__(self, status_code: int, path: str):
        self.status_code = status_code
        self.path = path
        super().__init__(f"Failed to fetch {path} (status: {status_code})")

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404


class UpstreamParseError(Exception):
    """Expected markup is missing from an upstream page."""


def build_pagination_query(current_page: int, per_page: int, lang: str = "en", units: str = "lbs") -> str:
    start = (current_page - 1) * per_page if current_page > 1 else 0
    end = start + per_page
    return f"start={start}&end={end}&lang={lang}&units={units}"


def calculate_pagination(total_items: int, current_page: int, per_page: int) -> Pagination:
    pages = math.ceil(total_items / per_page) if per_page else 0
    return Pagination(
        items=total_items,
        pages=pages,
        per_page=per_page,
        current_page=current_page,
        last_page=pages,
        first_page=1,
        from_=(current_page - 1) * per_page + 1,
        to=min(current_page * per_page, total_items),
    )


def parse_html(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "lxml")


def table_to_json(table: Tag | None) -> list[dict[str, str]]:
    """Convert an HTML table to a list of row dicts.

    The first row is the header: cell text lower-cased with all whitespace
    removed. Later rows map positionally onto those keys.
    """
    if table is None:
        return []

    rows = table.find_all("tr")
    if not rows:
        return []

    headers = [re.sub(r"\s+", "", cell.get_text().strip().lower()) for cell in rows[0].find_all(["th", "td"])]

    data = []
    for row in rows[1:]:
        row_data = {}
        for i, cell in enumerate(row.find_all("td")):
            if i < len(headers) and headers[i]:
                row_data[headers[i]] = cell.get_text().strip()
        if row_data:
            data.append(row_data)
    return data


def strip_html(html: str) -> str:
    return re.sub(r"<[^>]*>", "", html).strip()


def get_element_text(parent: Tag, selector: str, index: int = 0) -> str | None:
    elements = parent.select(selector)
    if index >= len(elements):
        return None
    return elements[index].get_text().strip() or None


def get_element_by_class(doc: Tag, class_name: str, index: int = 0) -> Tag | None:
    elements = doc.find_all(class_=class_name)
    if index >= len(elements):
        return None
    return elements[index]


class Scraper:
    """Async client for openpowerlifting.org with a read-through cache."""

    def __init__(self, cache: CacheStore, settings: Settings):
        self.cache = cache
        self.settings = settings
        self.timeout = settings.upstream_timeout_seconds
        self.headers = {
            "Cookie": f"units={settings.upstream_units};",
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
            "User-Agent": settings.user_agent,
            "Pragma": "no-cache",
        }
        self._pending_writes: set[asyncio.Task] = set()

    def _html_url(self, path: str) -> str:
        return f"{self.settings.base_url.rstrip('/')}/{path.lstrip('/')}"

    def _api_url(self, path: str) -> str:
        return f"{self.settings.api_url.rstrip('/')}/{path.lstrip('/')}"

    async def _get(self, url: str, path: str) -> httpx.Response:
        start = time.monotonic()
        async with httpx.AsyncClient(timeout=self.timeout, headers=self.headers) as client:
            resp = await client.get(url)
        elapsed_ms = int((time.monotonic() - start) * 1000)

        if not resp.is_success:
            logger.warning("Upstream GET | status=%d | %dms | path=%s", resp.status_code, elapsed_ms, path)
            raise UpstreamFetchError(resp.status_code, path)

        logger.info("Upstream GET OK | %dms | path=%s", elapsed_ms, path)
        return resp

    async def fetch_html(self, path: str) -> str:
        resp = await self._get(self._html_url(path), path)
        return resp.text

    async def fetch_json(self, path: str) -> Any:
        resp = await self._get(self._api_url(path), path)
        return resp.json()

    def build_pagination_query(self, current_page: int, per_page: int) -> str:
        return build_pagination_query(
            current_page, per_page, lang=self.settings.upstream_lang, units=self.settings.upstream_units,
        )

    async def with_cache(
        self,
        key: str,
        fetcher: Callable[[], Awaitable[Any]],
        ttl_seconds: int | None = DEFAULT_CACHE_TTL,
        use_cache: bool = True,
    ) -> CachedResult:
        """Read-through cache: at most one cache write per miss.

        Fetch failures are logged and reported as ``data=None``; callers turn
        that into a not-found response.
        """
        if not use_cache:
            try:
                return CachedResult(data=await fetcher(), cache=False)
            except Exception as e:
                self._log_fetch_error(e, key)
                return CachedResult(data=None, cache=False)

        try:
            cached = await self.cache.get(key)
            if cached is not None:
                logger.info("Cache HIT | key=%s", key)
                return CachedResult(data=json.loads(cached), cache=True)
        except Exception as e:
            logger.warning("Cache read error | key=%s | %s", key, str(e)[:200])

        try:
            data = await fetcher()
        except Exception as e:
            self._log_fetch_error(e, key)
            return CachedResult(data=None, cache=False)

        self._schedule_write(key, data, ttl_seconds)
        return CachedResult(data=data, cache=False)

    def _schedule_write(self, key: str, data: Any, ttl_seconds: int | None) -> None:
        """Fire-and-forget cache write; a failure is logged, never raised."""
        task = asyncio.create_task(self._write(key, data, ttl_seconds))
        self._pending_writes.add(task)
        task.add_done_callback(self._pending_writes.discard)

    async def _write(self, key: str, data: Any, ttl_seconds: int | None) -> None:
        try:
            await self.cache.set(key, json.dumps(data, ensure_ascii=False), ttl_seconds)
        except Exception as e:
            logger.warning("Cache write error | key=%s | %s", key, str(e)[:200])

    async def drain(self) -> None:
        """Wait for in-flight cache writes (shutdown and tests)."""
        if self._pending_writes:
            await asyncio.gather(*list(self._pending_writes))

    def _log_fetch_error(self, error: Exception, context: str) -> None:
        if isinstance(error, UpstreamFetchError):
            if error.is_not_found:
                logger.info("Resource not found | path=%s", error.path)
            else:
                logger.error("Scraper error | key=%s | %s", context, error)
        else:
            logger.error("Scraper error | key=%s | %s: %s", context, type(error).__name__, str(error)[:200])
