"""Rankings from the upstream JSON API.

The endpoint returns ``{"rows": [[...]], "total_length": n}`` where every
row is a fixed-position array of 24 fields.
"""

import math
import re
from typing import Any

from app.integrations.scraper import Scraper
from app.orchestrator.schemas import CachedResult, RankingRow, RankingsPage
from app.services.key_codec import rankings_key

INT_RE = re.compile(r"^\s*[-+]?\d+")
FLOAT_RE = re.compile(r"^\s*[-+]?(\d+\.?\d*|\.\d+)([eE][-+]?\d+)?")


def _field(row: list, index: int) -> Any:
    return row[index] if index < len(row) else None


def _str(value: Any) -> str:
    return str(value) if value else ""


def _int(value: Any) -> int:
    match = INT_RE.match(str(value)) if value is not None else None
    return int(match.group(0)) if match else 0


def _float(value: Any) -> float:
    match = FLOAT_RE.match(str(value)) if value is not None else None
    if not match:
        return 0
    number = float(match.group(0))
    return number if math.isfinite(number) else 0


def transform_ranking_row(row: list) -> RankingRow:
    username = _str(_field(row, 3))
    instagram = _str(_field(row, 4))
    meet_code = _str(_field(row, 12))

    return RankingRow(
        id=_int(_field(row, 0)),
        rank=_int(_field(row, 1)),
        full_name=_str(_field(row, 2)),
        username=username,
        user_profile=f"/api/users/{username}",
        instagram=instagram,
        instagram_url=f"https://www.instagram.com/{instagram}" if instagram else "",
        username_color=_str(_field(row, 5)),
        country=_str(_field(row, 6)),
        location=_str(_field(row, 7)),
        fed=_str(_field(row, 8)),
        federation_url=f"/api/federations/{meet_code.split('/')[0]}" if meet_code else "",
        date=_str(_field(row, 9)),
        country_two=_str(_field(row, 10)),
        state=_str(_field(row, 11)),
        meet_code=meet_code,
        meet_url=f"/api/meets/{meet_code}" if meet_code else "",
        sex=_str(_field(row, 13)),
        equip=_str(_field(row, 14)),
        age=_int(_field(row, 15)),
        open=_str(_field(row, 16)),
        body_weight=_float(_field(row, 17)),
        weight_class=_float(_field(row, 18)),
        squat=_float(_field(row, 19)),
        bench=_float(_field(row, 20)),
        deadlift=_float(_field(row, 21)),
        total=_float(_field(row, 22)),
        dots=_float(_field(row, 23)),
    )


def parse_rankings(payload: dict) -> dict:
    return RankingsPage(
        rows=[transform_ranking_row(row) for row in payload.get("rows") or []],
        total_length=_int(payload.get("total_length")),
    ).model_dump()


async def fetch_rankings(scraper: Scraper, current_page: int, per_page: int, filter_path: str = "") -> dict:
    query = scraper.build_pagination_query(current_page, per_page)
    base = f"/rankings/{filter_path}" if filter_path else "/rankings"
    payload = await scraper.fetch_json(f"{base}?{query}")
    return parse_rankings(payload)


async def get_rankings(
    scraper: Scraper,
    current_page: int = 1,
    per_page: int = 100,
    filter_path: str = "",
    use_cache: bool = True,
) -> CachedResult:
    return await scraper.with_cache(
        rankings_key(current_page, per_page, filter_path),
        lambda: fetch_rankings(scraper, current_page, per_page, filter_path),
        ttl_seconds=scraper.settings.cache_ttl_rankings,
        use_cache=use_cache,
    )


async def get_rank(scraper: Scraper, rank: int, per_page: int = 100, use_cache: bool = True) -> dict | None:
    """Look up one ranking position through the page that contains it."""
    if rank < 1:
        return None

    current_page = math.ceil(rank / per_page)
    index = (rank - 1) % per_page

    result = await get_rankings(scraper, current_page, per_page, use_cache=use_cache)
    if result.data is None:
        return None

    rows = result.data["rows"]
    return rows[index] if index < len(rows) else None
