"""Resource router — turns a decoded cache key back into fetched, parsed data.

The refresher decodes a key into a ``KeyDescriptor``; the router fetches the
descriptor's upstream path with the fetch mode its kind implies and runs the
same parser the client-facing pipeline uses, so refreshed values have the
same shape as values written on a cache miss.
"""

import logging
from collections.abc import Callable
from typing import Any

from app.config import Settings
from app.integrations.scraper import Scraper, parse_html
from app.pipelines.federations import parse_federation_meets
from app.pipelines.lifters import parse_lifter_profile
from app.pipelines.meets import parse_meet
from app.pipelines.rankings import parse_rankings
from app.pipelines.records import parse_records
from app.pipelines.status import parse_status
from app.services.key_codec import KeyDescriptor, KeyKind

logger = logging.getLogger(__name__)

Parser = Callable[[Any, KeyDescriptor], Any]

PARSERS: dict[KeyKind, Parser] = {
    KeyKind.STATUS: lambda doc, d: parse_status(doc),
    KeyKind.FEDERATIONS_LIST: lambda doc, d: parse_federation_meets(doc),
    KeyKind.FEDERATION: lambda doc, d: parse_federation_meets(doc),
    KeyKind.RECORDS: lambda doc, d: parse_records(doc),
    KeyKind.MEET: lambda doc, d: parse_meet(doc),
    KeyKind.USER: lambda doc, d: parse_lifter_profile(doc, d.params["username"]),
    KeyKind.RANKINGS: lambda payload, d: parse_rankings(payload),
}


def ttl_for(kind: KeyKind, settings: Settings) -> int:
    """One explicit TTL per resource kind."""
    ttl_map = {
        KeyKind.STATUS: settings.cache_ttl_status,
        KeyKind.FEDERATIONS_LIST: settings.cache_ttl_federations,
        KeyKind.FEDERATION: settings.cache_ttl_federations,
        KeyKind.RECORDS: settings.cache_ttl_records,
        KeyKind.MEET: settings.cache_ttl_meets,
        KeyKind.USER: settings.cache_ttl_users,
        KeyKind.RANKINGS: settings.cache_ttl_rankings,
    }
    return ttl_map[kind]


class ResourceRouter:
    """Maps a key descriptor to its upstream fetch and parser."""

    def __init__(self, scraper: Scraper):
        self.scraper = scraper

    def request_path(self, descriptor: KeyDescriptor) -> str:
        """Upstream path plus the pagination query, built with the configured lang and units."""
        if descriptor.kind is not KeyKind.RANKINGS:
            return descriptor.upstream_path
        query = self.scraper.build_pagination_query(
            descriptor.params["current_page"], descriptor.params["per_page"],
        )
        return f"{descriptor.upstream_path}?{query}"

    async def fetch(self, descriptor: KeyDescriptor) -> Any:
        parser = PARSERS[descriptor.kind]
        logger.debug("Routing | kind=%s | path=%s", descriptor.kind.value, self.request_path(descriptor))

        if descriptor.fetch_via == "json":
            payload = await self.scraper.fetch_json(self.request_path(descriptor))
            return parser(payload, descriptor)

        html = await self.scraper.fetch_html(descriptor.upstream_path)
        return parser(parse_html(html), descriptor)
