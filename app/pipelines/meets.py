"""Single meet results: ``/m/<federation>/<code>``."""

from bs4 import BeautifulSoup

from app.integrations.scraper import Scraper, parse_html, table_to_json
from app.orchestrator.schemas import CachedResult, MeetData
from app.services.key_codec import meet_key


def parse_meet(doc: BeautifulSoup) -> dict:
    h1 = doc.select_one("h1#meet")
    title = h1.get_text().strip() if h1 is not None else ""

    p = h1.find_next_sibling() if h1 is not None else None
    first_line = p.get_text().strip().split("\n")[0] if p is not None else ""
    date, *location = [part.strip() for part in first_line.split(",")]

    return MeetData(
        title=title,
        date=date,
        location=", ".join(location),
        results=table_to_json(doc.find("table")),
    ).model_dump()


async def fetch_meet(scraper: Scraper, code: str) -> dict:
    html = await scraper.fetch_html(f"/m/{code}")
    return parse_meet(parse_html(html))


async def get_meet(scraper: Scraper, code: str, use_cache: bool = True) -> CachedResult:
    return await scraper.with_cache(
        meet_key(code),
        lambda: fetch_meet(scraper, code),
        ttl_seconds=scraper.settings.cache_ttl_meets,
        use_cache=use_cache,
    )
