"""All-time records: ``/records[/<equipment>[/<sex>]]``."""

from bs4 import BeautifulSoup

from app.integrations.scraper import Scraper, parse_html, table_to_json
from app.orchestrator.schemas import CachedResult, RecordCategory
from app.services.key_codec import records_key


def parse_records(doc: BeautifulSoup) -> list[dict]:
    data = []
    for col in doc.find_all(class_="records-col"):
        heading = col.find(["h2", "h3"])
        table = col.find("table")
        if heading is not None and table is not None:
            data.append(RecordCategory(
                title=heading.get_text().strip(),
                records=table_to_json(table),
            ).model_dump())
    return data


def build_records_filter_path(equipment: str | None = None, sex: str | None = None) -> str:
    return "/".join(part for part in (equipment, sex) if part)


async def fetch_records(scraper: Scraper, filter_path: str = "") -> list[dict]:
    path = f"/records/{filter_path}" if filter_path else "/records"
    html = await scraper.fetch_html(path)
    return parse_records(parse_html(html))


async def get_records(scraper: Scraper, filter_path: str = "", use_cache: bool = True) -> CachedResult:
    return await scraper.with_cache(
        records_key(filter_path),
        lambda: fetch_records(scraper, filter_path),
        ttl_seconds=scraper.settings.cache_ttl_records,
        use_cache=use_cache,
    )
