"""Lifter profiles (``/u/<username>``) and lifter search."""

import logging
import re
from urllib.parse import quote

from bs4 import BeautifulSoup

from app.integrations.scraper import (
    Scraper,
    UpstreamParseError,
    get_element_by_class,
    parse_html,
    table_to_json,
)
from app.orchestrator.schemas import CachedResult, LifterProfile
from app.pipelines.rankings import transform_ranking_row
from app.services.key_codec import user_key

logger = logging.getLogger(__name__)

SEX_RE = re.compile(r"\(([MF])\)")
INSTAGRAM_RE = re.compile(r"instagram\.com/([^/]+)")


def parse_lifter_profile(doc: BeautifulSoup, username: str) -> dict:
    mixed_content = get_element_by_class(doc, "mixed-content")
    if mixed_content is None:
        raise UpstreamParseError(f"User profile not found: {username}")

    h1 = mixed_content.find("h1")
    name_span = None
    if h1 is not None:
        name_span = h1.select_one("span.green") or h1.find("span")
    name = (name_span.get_text().strip() if name_span is not None else "") or username

    h1_text = h1.get_text() if h1 is not None else ""
    sex_match = SEX_RE.search(h1_text)

    ig_link = h1.select_one("a.instagram") if h1 is not None else None
    ig_match = INSTAGRAM_RE.search(ig_link.get("href", "")) if ig_link is not None else None
    instagram = ig_match.group(1) if ig_match else ""

    tables = mixed_content.find_all("table")

    return LifterProfile(
        name=name,
        username=username,
        sex=sex_match.group(1) if sex_match else "",
        instagram=instagram,
        instagram_url=f"https://www.instagram.com/{instagram}" if instagram else "",
        personal_best=table_to_json(tables[0]) if len(tables) > 0 else [],
        competition_results=table_to_json(tables[1]) if len(tables) > 1 else [],
    ).model_dump()


async def fetch_lifter(scraper: Scraper, username: str) -> dict:
    html = await scraper.fetch_html(f"/u/{username}")
    return parse_lifter_profile(parse_html(html), username)


async def get_lifter(scraper: Scraper, username: str, use_cache: bool = True) -> CachedResult:
    return await scraper.with_cache(
        user_key(username),
        lambda: fetch_lifter(scraper, username),
        ttl_seconds=scraper.settings.cache_ttl_users,
        use_cache=use_cache,
    )


async def search_lifters(scraper: Scraper, search: str, current_page: int = 1, per_page: int = 100) -> list[dict] | None:
    """Find the rankings index for ``search`` and return one page from there. Not cached."""
    if not search:
        return None

    offset = (current_page - 1) * per_page
    try:
        found = await scraper.fetch_json(f"/search/rankings?q={quote(search)}&start={offset}")
        start = int(found["next_index"])
        payload = await scraper.fetch_json(
            f"/rankings?start={start}&end={start + per_page}"
            f"&lang={scraper.settings.upstream_lang}&units={scraper.settings.upstream_units}"
        )
    except Exception as e:
        logger.info("Lifter search failed | search=%s | %s", search, str(e)[:200])
        return None

    return [transform_ranking_row(row).model_dump() for row in payload.get("rows") or []]
