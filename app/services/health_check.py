"""API health check: probes this service's own public routes.

The result is one entry per route and is cached for a day under an
internal key, so the probe runs at most once per TTL.
"""

import asyncio
import json
import logging

import httpx

from app.config import Settings
from app.services.cache import CacheStore
from app.services.key_codec import GLOBAL_STATUS_KEY

logger = logging.getLogger(__name__)

# /api/health-check itself is left out: probing it would recurse.
PROBE_ROUTES = [
    "/api/rankings?cache=false",
    "/api/rankings/1?cache=false",
    "/api/rankings?current_page=1&per_page=100&cache=false",
    "/api/federations?cache=false",
    "/api/federations?current_page=1&per_page=100&cache=false",
    "/api/federations/ipf?cache=false",
    "/api/federations/ipf?year=2020&cache=false",
    "/api/meets/uspa/1969?cache=false",
    "/api/records?cache=false",
    "/api/users/johnhaack?cache=false",
    "/api/users?search=haack&cache=false",
    "/api/status?cache=false",
]


class HealthCheckService:
    def __init__(self, cache: CacheStore, settings: Settings):
        self.cache = cache
        self.settings = settings

    async def _probe(self, client: httpx.AsyncClient, route: str) -> dict:
        try:
            resp = await client.get(route)
        except httpx.HTTPError as e:
            logger.warning("Health probe failed | route=%s | %s", route, str(e)[:200])
            return {"status": False, "method": "GET", "url": route, "date": None}
        return {
            "status": resp.is_success,
            "method": "GET",
            "url": route,
            "date": resp.headers.get("date"),
        }

    async def probe_routes(self) -> list[dict]:
        headers = {"Authorization": f"Bearer {self.settings.x_api_key}"}
        async with httpx.AsyncClient(
            base_url=self.settings.domain,
            headers=headers,
            timeout=self.settings.upstream_timeout_seconds,
        ) as client:
            return list(await asyncio.gather(*(self._probe(client, route) for route in PROBE_ROUTES)))

    async def get_api_status(self) -> list[dict]:
        cached = await self.cache.get(GLOBAL_STATUS_KEY)
        if cached is not None:
            return json.loads(cached)

        data = await self.probe_routes()
        await self.cache.set(GLOBAL_STATUS_KEY, json.dumps(data), self.settings.cache_ttl_global_status)
        logger.info("Global status cache was updated | routes=%d | failing=%d",
                    len(data), sum(1 for d in data if not d["status"]))
        return data
