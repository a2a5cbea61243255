"""Pydantic models for scraped records and API responses.

Split into: pagination, upstream records (one per resource kind), and
response wrappers.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# ═══════════════ PAGINATION ═══════════════

class Pagination(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    items: int
    pages: int
    per_page: int
    current_page: int
    last_page: int
    first_page: int = 1
    from_: int = Field(alias="from")
    to: int


# ═══════════════ UPSTREAM RECORDS ═══════════════

class StatusData(BaseModel):
    server_version: str = ""
    meets: str = ""
    federations: list[dict[str, str]] = Field(default_factory=list)


class RecordCategory(BaseModel):
    title: str = ""
    records: list[dict[str, str]] = Field(default_factory=list)


class MeetData(BaseModel):
    title: str = ""
    date: str = ""
    location: str = ""
    results: list[dict[str, str]] = Field(default_factory=list)


class RankingRow(BaseModel):
    """One lifter row from the rankings JSON endpoint (24 positional fields)."""
    id: int = 0
    rank: int = 0
    full_name: str = ""
    username: str = ""
    user_profile: str = ""
    instagram: str = ""
    instagram_url: str = ""
    username_color: str = ""
    country: str = ""
    location: str = ""
    fed: str = ""
    federation_url: str = ""
    date: str = ""
    country_two: str = ""
    state: str = ""
    meet_code: str = ""
    meet_url: str = ""
    sex: str = ""
    equip: str = ""
    age: int = 0
    open: str = ""
    body_weight: float = 0
    weight_class: float = 0
    squat: float = 0
    bench: float = 0
    deadlift: float = 0
    total: float = 0
    dots: float = 0


class RankingsPage(BaseModel):
    rows: list[RankingRow] = Field(default_factory=list)
    total_length: int = 0


class LifterProfile(BaseModel):
    name: str = ""
    username: str = ""
    sex: str = ""
    instagram: str = ""
    instagram_url: str = ""
    personal_best: list[dict[str, str]] = Field(default_factory=list)
    competition_results: list[dict[str, str]] = Field(default_factory=list)


# ═══════════════ RESPONSES ═══════════════

class CachedResult(BaseModel):
    """Outcome of a read-through cache lookup. ``data`` is None when the fetch failed."""
    data: Any = None
    cache: bool = False


class ApiResponse(BaseModel):
    status: str = "success"
    request_url: str = ""
    message: str = ""
    cache: bool = False
    data: Any = None
    pagination: Pagination | None = None


class RefreshSummary(BaseModel):
    total: int = 0
    successful: int = 0
    failed: int = 0
    skipped: int = 0
    duration_ms: int = 0
    failed_endpoints: list[dict[str, str]] = Field(default_factory=list)
