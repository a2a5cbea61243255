"""Cache key codec — maps cache keys to upstream requests and back.

Key grammar (the refresher must be able to invert every key a pipeline writes):

  status                               -> /status                    (html)
  federations-list                     -> /mlist                     (html)
  records                              -> /records                   (html)
  records/<filter-path>                -> /records/<filter-path>     (html)
  rankings-<page>-<perPage>            -> /rankings?<page query>     (json)
  rankings/<filter-path>-<page>-<pp>   -> /rankings/<filter>?<query> (json)
  federation-<name>[-<yyyy>]           -> /mlist/<name>[/<yyyy>]     (html)
  meet-<code/with/slashes>             -> /m/<code>                  (html)
  user-<username>                      -> /u/<username>              (html)

Rankings descriptors carry the page and size in ``params``; the fetcher adds
the pagination query with the deployment's lang and units.

A federation year is the last hyphen-delimited segment and exactly four
digits; any other trailing number belongs to the name.

Decoding runs an ordered list of matchers, first match wins.
"""

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

logger = logging.getLogger(__name__)

INTERNAL_PREFIX = "close-powerlifting"
HOSTNAME_KEY = f"{INTERNAL_PREFIX}-hostname"
GLOBAL_STATUS_KEY = f"{INTERNAL_PREFIX}-global-status-call-cache"
INTERNAL_KEYS = frozenset({"hostname", HOSTNAME_KEY, GLOBAL_STATUS_KEY})

YEAR_RE = re.compile(r"\d{4}")
DIGITS_RE = re.compile(r"\d+")


class KeyKind(str, Enum):
    STATUS = "status"
    FEDERATIONS_LIST = "federations_list"
    RECORDS = "records"
    RANKINGS = "rankings"
    FEDERATION = "federation"
    MEET = "meet"
    USER = "user"


class KeyOutcome(str, Enum):
    OK = "ok"
    SKIPPED = "skipped"
    INVALID = "invalid"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class KeyDescriptor:
    """A decoded cache key: what to fetch upstream and how."""
    kind: KeyKind
    upstream_path: str
    fetch_via: str  # "html" | "json"
    params: dict = field(default_factory=dict)


@dataclass(frozen=True)
class DecodeResult:
    key: str
    outcome: KeyOutcome
    descriptor: KeyDescriptor | None = None
    reason: str = ""

    @property
    def ok(self) -> bool:
        return self.outcome is KeyOutcome.OK


# ═══════════════ ENCODE ═══════════════

def status_key() -> str:
    return "status"


def federations_list_key() -> str:
    return "federations-list"


def records_key(filter_path: str = "") -> str:
    filter_path = filter_path.strip("/")
    return f"records/{filter_path}" if filter_path else "records"


def rankings_key(current_page: int, per_page: int, filter_path: str = "") -> str:
    filter_path = filter_path.strip("/")
    prefix = f"rankings/{filter_path}" if filter_path else "rankings"
    return f"{prefix}-{current_page}-{per_page}"


def federation_key(name: str, year: int | str | None = None) -> str:
    return f"federation-{name}-{year}" if year else f"federation-{name}"


def meet_key(code: str) -> str:
    return f"meet-{code}"


def user_key(username: str) -> str:
    return f"user-{username}"


def encode(descriptor: KeyDescriptor) -> str:
    """Rebuild the cache key a descriptor was decoded from."""
    p = descriptor.params
    if descriptor.kind is KeyKind.STATUS:
        return status_key()
    if descriptor.kind is KeyKind.FEDERATIONS_LIST:
        return federations_list_key()
    if descriptor.kind is KeyKind.RECORDS:
        return records_key(p.get("filter_path", ""))
    if descriptor.kind is KeyKind.RANKINGS:
        return rankings_key(p["current_page"], p["per_page"], p.get("filter_path", ""))
    if descriptor.kind is KeyKind.FEDERATION:
        return federation_key(p["name"], p.get("year"))
    if descriptor.kind is KeyKind.MEET:
        return meet_key(p["code"])
    if descriptor.kind is KeyKind.USER:
        return user_key(p["username"])
    raise ValueError(f"Cannot encode key kind {descriptor.kind!r}")


# ═══════════════ DECODE ═══════════════

Matcher = Callable[[str], DecodeResult | None]

_EXACT = {
    "status": KeyDescriptor(KeyKind.STATUS, "/status", "html"),
    "federations-list": KeyDescriptor(KeyKind.FEDERATIONS_LIST, "/mlist", "html"),
    "records": KeyDescriptor(KeyKind.RECORDS, "/records", "html", {"filter_path": ""}),
}


def _ok(key: str, descriptor: KeyDescriptor) -> DecodeResult:
    return DecodeResult(key=key, outcome=KeyOutcome.OK, descriptor=descriptor)


def _invalid(key: str, reason: str) -> DecodeResult:
    return DecodeResult(key=key, outcome=KeyOutcome.INVALID, reason=reason)


def match_exact(key: str) -> DecodeResult | None:
    descriptor = _EXACT.get(key)
    return _ok(key, descriptor) if descriptor else None


def match_filtered_records(key: str) -> DecodeResult | None:
    if not key.startswith("records/"):
        return None
    rest = key[len("records/"):]
    if not rest:
        return _invalid(key, "empty records filter path")
    return _ok(key, KeyDescriptor(KeyKind.RECORDS, f"/records/{rest}", "html", {"filter_path": rest}))


def _rankings_descriptor(key: str, filter_path: str, page: str, per_page: str) -> DecodeResult:
    if not (DIGITS_RE.fullmatch(page) and DIGITS_RE.fullmatch(per_page)):
        return _invalid(key, f"non-numeric pagination segments '{page}', '{per_page}'")

    current_page, size = int(page), int(per_page)
    path = f"/rankings/{filter_path}" if filter_path else "/rankings"
    return _ok(key, KeyDescriptor(
        KeyKind.RANKINGS,
        path,
        "json",
        {"current_page": current_page, "per_page": size, "filter_path": filter_path},
    ))


def match_rankings(key: str) -> DecodeResult | None:
    if not key.startswith("rankings-"):
        return None
    parts = key[len("rankings-"):].split("-")
    if len(parts) != 2:
        return _invalid(key, "expected rankings-<page>-<perPage>")
    return _rankings_descriptor(key, "", parts[0], parts[1])


def match_filtered_rankings(key: str) -> DecodeResult | None:
    if not key.startswith("rankings/"):
        return None
    parts = key[len("rankings/"):].rsplit("-", 2)
    if len(parts) != 3 or not parts[0]:
        return _invalid(key, "expected rankings/<filter-path>-<page>-<perPage>")
    return _rankings_descriptor(key, parts[0], parts[1], parts[2])


def split_federation(rest: str) -> tuple[str, str | None]:
    """Split ``<name>[-<yyyy>]``; only an exactly-4-digit last segment is a year."""
    name, sep, last = rest.rpartition("-")
    if sep and name and YEAR_RE.fullmatch(last):
        return name, last
    return rest, None


def match_federation(key: str) -> DecodeResult | None:
    if not key.startswith("federation-"):
        return None
    rest = key[len("federation-"):]
    if not rest:
        return _invalid(key, "empty federation name")

    name, year = split_federation(rest)
    path = f"/mlist/{name}/{year}" if year else f"/mlist/{name}"
    return _ok(key, KeyDescriptor(KeyKind.FEDERATION, path, "html", {"name": name, "year": year}))


def match_meet(key: str) -> DecodeResult | None:
    if not key.startswith("meet-"):
        return None
    code = key[len("meet-"):]
    if not code:
        return _invalid(key, "empty meet code")
    return _ok(key, KeyDescriptor(KeyKind.MEET, f"/m/{code}", "html", {"code": code}))


def match_user(key: str) -> DecodeResult | None:
    if not key.startswith("user-"):
        return None
    username = key[len("user-"):]
    if not username:
        return _invalid(key, "empty username")
    return _ok(key, KeyDescriptor(KeyKind.USER, f"/u/{username}", "html", {"username": username}))


def match_internal(key: str) -> DecodeResult | None:
    if key in INTERNAL_KEYS:
        return DecodeResult(key=key, outcome=KeyOutcome.SKIPPED, reason="internal housekeeping key")
    return None


MATCHERS: list[Matcher] = [
    match_exact,
    match_filtered_records,
    match_rankings,
    match_filtered_rankings,
    match_federation,
    match_meet,
    match_user,
    match_internal,
]


def decode(key: str) -> DecodeResult:
    """Decode a cache key. Never raises: bad keys come back INVALID or UNKNOWN."""
    for matcher in MATCHERS:
        result = matcher(key)
        if result is not None:
            if result.outcome is KeyOutcome.INVALID:
                logger.warning("Invalid cache key | key=%s | %s", key, result.reason)
            return result

    logger.warning("Unknown cache key type | key=%s", key)
    return DecodeResult(key=key, outcome=KeyOutcome.UNKNOWN, reason="unknown key type")
