"""
Conference feed: fetch the YAML list, normalize entries, cache with a TTL.
"""

from __future__ import annotations

import time
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import requests
import yaml
from dateutil import parser as dateparser

from . import config
from .config import DEFAULT_SUBJECT, log, warn
from .errors import DeadlineParseError, ProviderError
from .models import Conference
from .timeutil import DEADLINE_FORMAT, parse_deadline, resolve_zone

REQUIRED_FIELDS = ("id", "title", "year", "timezone")
DEADLINE_FIELDS = ("deadline", "abstract_deadline")


# ----------------------------
# Normalization
# ----------------------------

def normalize_subjects(raw: Any) -> Tuple[str, ...]:
    """Single tag or list of tags -> non-empty ordered tuple without repeats."""
    if isinstance(raw, str):
        items = [raw]
    elif isinstance(raw, (list, tuple, set)):
        items = list(raw)
    else:
        items = []

    out: List[str] = []
    for s in items:
        s = str(s or "").strip()
        if s and s not in out:
            out.append(s)
    return tuple(out) or (DEFAULT_SUBJECT,)


def _deadline_str(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.strftime(DEADLINE_FORMAT)
    return str(value)


def _parse_day(value: Any) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return dateparser.parse(str(value)).date()
    except (ValueError, OverflowError):
        return None


def _int_or(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def validate_entry(entry: Dict[str, Any], index: int) -> List[str]:
    """Data-quality warnings for one raw feed entry. Nothing here is fatal."""
    errors: List[str] = []
    cid = entry.get("id") or f"#{index}"

    for f in REQUIRED_FIELDS:
        if not entry.get(f):
            errors.append(f"Conference at index {index}: missing required field '{f}'")

    tz_name = entry.get("timezone")
    if tz_name and resolve_zone(str(tz_name)) is None:
        errors.append(f"Conference '{cid}': invalid IANA timezone '{tz_name}'")

    if tz_name:
        for f in DEADLINE_FIELDS:
            raw = _deadline_str(entry.get(f))
            if not raw:
                continue
            try:
                parse_deadline(raw, str(tz_name))
            except DeadlineParseError as exc:
                errors.append(f"Conference '{cid}': invalid '{f}': {exc.reason}")

    for f in ("start", "end"):
        if entry.get(f) and _parse_day(entry.get(f)) is None:
            errors.append(f"Conference '{cid}': invalid date for '{f}': {entry.get(f)}")

    year = entry.get("year")
    if year is not None and (isinstance(year, bool) or not isinstance(year, int) or not 1900 <= year <= 2100):
        errors.append(f"Conference '{cid}': invalid year '{year}'")

    hindex = entry.get("hindex")
    if hindex is not None and (isinstance(hindex, bool) or not isinstance(hindex, int) or hindex < 0):
        errors.append(f"Conference '{cid}': invalid h-index '{hindex}'")

    start, end = _parse_day(entry.get("start")), _parse_day(entry.get("end"))
    if start and end and start > end:
        errors.append(f"Conference '{cid}': start {start} is after end {end}")

    abstract, paper = _deadline_str(entry.get("abstract_deadline")), _deadline_str(entry.get("deadline"))
    if abstract and paper and tz_name:
        try:
            if parse_deadline(abstract, str(tz_name)) > parse_deadline(paper, str(tz_name)):
                errors.append(f"Conference '{cid}': abstract deadline is after the paper deadline")
        except DeadlineParseError:
            pass  # already reported above

    return errors


def conference_from_entry(entry: Dict[str, Any]) -> Conference:
    title = str(entry.get("title") or "").strip()
    return Conference(
        id=str(entry["id"]).strip().lower(),
        title=title,
        year=_int_or(entry.get("year"), 0),
        timezone=str(entry.get("timezone") or "").strip(),
        full_name=str(entry.get("full_name") or title).strip(),
        deadline=_deadline_str(entry.get("deadline")),
        abstract_deadline=_deadline_str(entry.get("abstract_deadline")),
        start=_parse_day(entry.get("start")),
        end=_parse_day(entry.get("end")),
        place=(str(entry["place"]).strip() if entry.get("place") else None),
        hindex=max(_int_or(entry.get("hindex"), 0), 0),
        sub=normalize_subjects(entry.get("sub")),
        note=str(entry.get("note") or ""),
        type=entry.get("type"),
        link=entry.get("link"),
        paperslink=entry.get("paperslink"),
        pwclink=entry.get("pwclink"),
    )


def parse_conferences(text: str) -> List[Conference]:
    """Parse the YAML feed. Entries missing a required field are dropped."""
    parsed = yaml.safe_load(text)
    if parsed is None:
        return []
    if not isinstance(parsed, list):
        raise ValueError(f"Conference YAML must be a list, got {type(parsed).__name__}")

    out: List[Conference] = []
    seen = set()
    for index, entry in enumerate(parsed):
        if not isinstance(entry, dict):
            warn(f"Conference at index {index}: not a mapping, skipped")
            continue
        for msg in validate_entry(entry, index):
            warn(msg)
        if any(not entry.get(f) for f in REQUIRED_FIELDS):
            continue

        conf = conference_from_entry(entry)
        if conf.id in seen:
            warn(f"Duplicate conference id '{conf.id}', keeping the first entry")
            continue
        seen.add(conf.id)
        out.append(conf)

    log(f"[feed] Parsed {len(out)} conferences")
    return out


# ----------------------------
# Fetch + cache
# ----------------------------

def fetch_yaml(url: str, timeout: int = 30) -> str:
    r = requests.get(url, headers={"User-Agent": "deadlines-slack-bot"}, timeout=timeout)
    r.raise_for_status()
    return r.text


class ConferenceProvider:
    """Read-through cache over the conference feed.

    A failed refresh falls back to the previous snapshot, however old. Only
    when nothing was ever loaded does ``get_conferences`` raise ProviderError.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        ttl: Optional[int] = None,
        fetch: Callable[[str], str] = fetch_yaml,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.url = url or config.CONFERENCES_DATA_URL
        self.ttl = config.CACHE_TTL_SECONDS if ttl is None else ttl
        self.fetch = fetch
        self.clock = clock
        self._snapshot: Optional[List[Conference]] = None
        self._fetched_at: Optional[float] = None

    def _fresh(self) -> bool:
        return (
            self._snapshot is not None
            and self._fetched_at is not None
            and self.clock() - self._fetched_at < self.ttl
        )

    def get_conferences(self) -> List[Conference]:
        if self._fresh():
            log(f"[feed] {len(self._snapshot)} conferences from cache")
            return list(self._snapshot)

        log(f"[feed] Cache miss - fetching {self.url}")
        try:
            conferences = parse_conferences(self.fetch(self.url))
        except (requests.RequestException, yaml.YAMLError, ValueError) as exc:
            if self._snapshot is not None:
                warn(f"Conference refresh failed ({exc}); using stale snapshot")
                return list(self._snapshot)
            raise ProviderError(f"Could not load conferences from {self.url}: {exc}") from exc

        self._snapshot = conferences
        self._fetched_at = self.clock()
        return list(conferences)

    def invalidate(self) -> None:
        self._snapshot = None
        self._fetched_at = None
        log("[feed] Conference cache invalidated")

    def status(self) -> Dict[str, Any]:
        return {
            "cached": self._snapshot is not None,
            "fetched_at": self._fetched_at,
            "count": len(self._snapshot or []),
        }


class StaticProvider:
    """Fixed conference list, for tests and one-off runs."""

    def __init__(self, conferences: Sequence[Conference]) -> None:
        self.conferences = list(conferences)

    def get_conferences(self) -> List[Conference]:
        return list(self.conferences)
