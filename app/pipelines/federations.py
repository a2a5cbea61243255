"""Federation meet lists: ``/mlist`` and ``/mlist/<federation>[/<year>]``."""

from bs4 import BeautifulSoup

from app.integrations.scraper import Scraper, calculate_pagination, parse_html, table_to_json
from app.orchestrator.schemas import CachedResult, Pagination
from app.services.key_codec import federation_key, federations_list_key


def parse_federation_meets(doc: BeautifulSoup) -> list[dict[str, str]]:
    return table_to_json(doc.find("table"))


async def fetch_federation_meets(scraper: Scraper, federation: str | None = None, year: int | None = None) -> list[dict]:
    if federation is None:
        path = "/mlist"
    else:
        path = f"/mlist/{federation}/{year}" if year else f"/mlist/{federation}"
    html = await scraper.fetch_html(path)
    return parse_federation_meets(parse_html(html))


async def get_federations(
    scraper: Scraper, current_page: int = 1, per_page: int = 100, use_cache: bool = True,
) -> tuple[CachedResult, Pagination | None]:
    """The whole list is cached once and paginated in memory."""
    result = await scraper.with_cache(
        federations_list_key(),
        lambda: fetch_federation_meets(scraper),
        ttl_seconds=scraper.settings.cache_ttl_federations,
        use_cache=use_cache,
    )
    if result.data is None:
        return result, None

    rows = result.data
    start = (current_page - 1) * per_page
    page = CachedResult(data=rows[start:start + per_page], cache=result.cache)
    return page, calculate_pagination(len(rows), current_page, per_page)


async def get_federation(
    scraper: Scraper, federation: str, year: int | None = None, use_cache: bool = True,
) -> CachedResult:
    return await scraper.with_cache(
        federation_key(federation, year),
        lambda: fetch_federation_meets(scraper, federation, year),
        ttl_seconds=scraper.settings.cache_ttl_federations,
        use_cache=use_cache,
    )
