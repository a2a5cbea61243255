"""Upstream status page: server version, meet tracking summary, federations table."""

import re

from bs4 import BeautifulSoup, NavigableString, Tag

from app.integrations.scraper import (
    Scraper,
    UpstreamParseError,
    get_element_by_class,
    parse_html,
    table_to_json,
)
from app.orchestrator.schemas import CachedResult, StatusData
from app.services.key_codec import status_key

COMMIT_RE = re.compile(r"commits/([a-f0-9]+)")


def parse_status(doc: BeautifulSoup) -> dict:
    text_content = get_element_by_class(doc, "text-content")
    if text_content is None:
        raise UpstreamParseError("Could not find text-content element on status page")

    headings = text_content.find_all("h2")

    server_version = ""
    for h2 in headings:
        if "Server Version" in h2.get_text():
            p = h2.find_next_sibling()
            link = p.find("a") if p is not None else None
            match = COMMIT_RE.search(link.get("href", "")) if link is not None else None
            server_version = match.group(1) if match else ""
            break

    meets = ""
    for h2 in headings:
        if "Meets" in h2.get_text():
            for sibling in h2.next_siblings:
                if isinstance(sibling, Tag):
                    break
                if isinstance(sibling, NavigableString) and "Tracking" in sibling:
                    meets = sibling.strip()
                    break
            break

    return StatusData(
        server_version=server_version,
        meets=meets,
        federations=table_to_json(text_content.find("table")),
    ).model_dump()


async def fetch_status(scraper: Scraper) -> dict:
    html = await scraper.fetch_html("/status")
    return parse_status(parse_html(html))


async def get_status(scraper: Scraper, use_cache: bool = True) -> CachedResult:
    return await scraper.with_cache(
        status_key(),
        lambda: fetch_status(scraper),
        ttl_seconds=scraper.settings.cache_ttl_status,
        use_cache=use_cache,
    )
