"""
Search, filter and sort helpers over a list of conferences.

All functions are pure: the input sequence is never mutated and sorts are
stable, so equal keys keep their input order.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Dict, List, Optional, Sequence

from .config import DEFAULT_TIMEZONE
from .models import BatchItem, Conference, DeadlineInfo
from .timeutil import as_utc, days_until, next_deadline, next_upcoming_deadline, utc_now

SORT_MODES = ("deadline", "hindex", "start")

_EPOCH = date(1970, 1, 1)


def _squash(s: str) -> str:
    return "".join(s.split()).lower()


def search(conferences: Sequence[Conference], query: str) -> List[Conference]:
    """Case- and whitespace-insensitive substring match on title + year + full name."""
    if not query:
        return list(conferences)
    q = _squash(query)
    return [c for c in conferences if q in _squash(f"{c.title}{c.year}{c.full_name}")]


def filter_by_year(conferences: Sequence[Conference], year: int) -> List[Conference]:
    return [c for c in conferences if c.year == year]


def filter_by_subject(conferences: Sequence[Conference], subject: str) -> List[Conference]:
    return [c for c in conferences if subject in c.sub]


def filter_by_subjects(conferences: Sequence[Conference], subjects: Sequence[str]) -> List[Conference]:
    """Union of subject filters; each conference appears at most once."""
    if not subjects:
        return list(conferences)
    wanted = set(subjects)
    seen = set()
    out: List[Conference] = []
    for c in conferences:
        if c.id in seen or not wanted.intersection(c.sub):
            continue
        seen.add(c.id)
        out.append(c)
    return out


# ----------------------------
# Sorting
# ----------------------------

def sort_by_deadline(conferences: Sequence[Conference], now: Optional[datetime] = None) -> List[Conference]:
    """Upcoming deadlines first (nearest first), then expired (most recent first), then undated."""
    ref = as_utc(now or utc_now())

    def key(c: Conference):
        nxt = next_deadline(c, ref)
        if nxt is None:
            return (2, 0.0)
        ts = as_utc(nxt.datetime).timestamp()
        if as_utc(nxt.datetime) > ref:
            return (0, ts)
        return (1, -ts)

    return sorted(conferences, key=key)


def sort_by_hindex(conferences: Sequence[Conference]) -> List[Conference]:
    return sorted(conferences, key=lambda c: -(c.hindex or 0))


def sort_by_start(conferences: Sequence[Conference]) -> List[Conference]:
    return sorted(conferences, key=lambda c: -(c.start or _EPOCH).toordinal())


def sort_conferences(
    conferences: Sequence[Conference],
    mode: str = "deadline",
    now: Optional[datetime] = None,
) -> List[Conference]:
    if mode == "deadline":
        return sort_by_deadline(conferences, now)
    if mode == "hindex":
        return sort_by_hindex(conferences)
    if mode == "start":
        return sort_by_start(conferences)
    raise ValueError(f"Unknown sort mode: {mode!r} (expected one of {', '.join(SORT_MODES)})")


# ----------------------------
# Upcoming deadlines
# ----------------------------

def _upcoming_items(
    conferences: Sequence[Conference],
    now: datetime,
    viewer_zone: str,
) -> List[BatchItem]:
    items: List[BatchItem] = []
    for c in conferences:
        dl = next_upcoming_deadline(c, now, viewer_zone)
        if dl is None:
            continue
        items.append(BatchItem(conference=c, deadline=dl, days_left=days_until(dl.datetime, now)))
    items.sort(key=lambda it: as_utc(it.deadline.datetime))
    return items


def upcoming_deadlines(
    conferences: Sequence[Conference],
    limit: Optional[int] = None,
    now: Optional[datetime] = None,
    viewer_zone: str = DEFAULT_TIMEZONE,
) -> List[BatchItem]:
    """Conferences with a strictly-future deadline, nearest first."""
    items = _upcoming_items(conferences, as_utc(now or utc_now()), viewer_zone)
    return items[:limit] if limit else items


def upcoming_within(
    conferences: Sequence[Conference],
    days: int,
    now: Optional[datetime] = None,
    viewer_zone: str = DEFAULT_TIMEZONE,
) -> List[BatchItem]:
    """Strictly-future deadlines at most ``days`` calendar days away, nearest first."""
    items = _upcoming_items(conferences, as_utc(now or utc_now()), viewer_zone)
    return [it for it in items if it.days_left <= days]


def days_until_deadline(deadline: DeadlineInfo, now: Optional[datetime] = None) -> int:
    return days_until(deadline.datetime, now)


def is_deadline_expired(deadline: DeadlineInfo, now: Optional[datetime] = None) -> bool:
    return as_utc(deadline.datetime) <= as_utc(now or utc_now())


# ----------------------------
# Lookups and groupings
# ----------------------------

def find_conference(conferences: Sequence[Conference], query: str) -> Optional[Conference]:
    """Exact id match first, then title equality or full-name substring."""
    q = (query or "").strip().lower()
    if not q:
        return None
    for c in conferences:
        if c.id == q:
            return c
    squashed = _squash(q)
    for c in conferences:
        if _squash(c.title) == squashed or squashed in _squash(c.full_name):
            return c
    return None


def unique_years(conferences: Sequence[Conference]) -> List[int]:
    return sorted({c.year for c in conferences}, reverse=True)


def unique_subjects(conferences: Sequence[Conference]) -> List[str]:
    return sorted({s for c in conferences for s in c.sub})


def group_by_subject(conferences: Sequence[Conference]) -> Dict[str, List[Conference]]:
    by: Dict[str, List[Conference]] = {}
    for c in conferences:
        for s in c.sub:
            by.setdefault(s, []).append(c)
    return by
