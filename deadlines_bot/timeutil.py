"""
Deadline instants for conferences.

Deadlines are stored as ``YYYY-MM-DD HH:MM`` wall-clock strings in the
conference's own IANA zone. They are parsed on every query because "now"
moves and the result is never cached.
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from dateutil import tz as dateutil_tz

from .config import DEFAULT_TIMEZONE, warn
from .errors import DeadlineParseError, InvalidCalendarValue, InvalidFormat, InvalidZone
from .models import ABSTRACT_LABEL, SUBMISSION_LABEL, Conference, DeadlineInfo

DEADLINE_FORMAT = "%Y-%m-%d %H:%M"
_DEADLINE_RE = re.compile(r"(\d{4})-(\d{2})-(\d{2}) (\d{2}):(\d{2})")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(dt: datetime) -> datetime:
    """Normalize to UTC; naive values are taken to be UTC already."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def resolve_zone(name: Optional[str]):
    """Return a tzinfo for an IANA zone name, or None if it is unknown.

    ``gettz`` also builds zones from POSIX TZ strings (``GMT+3``) and from the
    host's local abbreviations; only tz database entries are accepted here.
    """
    if not name or not isinstance(name, str):
        return None
    s = name.strip()
    if not s or s.startswith(("/", ".")):
        return None
    zone = dateutil_tz.gettz(s)
    if isinstance(zone, (dateutil_tz.tzstr, dateutil_tz.tzlocal)):
        return None
    return zone


def parse_deadline(raw: str, zone: str) -> datetime:
    """Parse a ``YYYY-MM-DD HH:MM`` string as a wall-clock time in ``zone``.

    Raises InvalidFormat, InvalidZone or InvalidCalendarValue. Local times
    that do not exist (Feb 30, a spring-forward gap) are rejected instead of
    being shifted to a neighbouring instant.
    """
    m = _DEADLINE_RE.fullmatch(raw) if isinstance(raw, str) else None
    if not m:
        raise InvalidFormat(str(raw), str(zone), "expected YYYY-MM-DD HH:MM")

    tzinfo = resolve_zone(zone)
    if tzinfo is None:
        raise InvalidZone(raw, str(zone), "unknown IANA timezone")

    year, month, day, hour, minute = (int(g) for g in m.groups())
    try:
        dt = datetime(year, month, day, hour, minute, tzinfo=tzinfo)
    except ValueError as exc:
        raise InvalidCalendarValue(raw, zone, str(exc)) from exc

    if not dateutil_tz.datetime_exists(dt):
        raise InvalidCalendarValue(raw, zone, "local time falls in a DST gap")
    return dt


def format_deadline(dt: datetime) -> str:
    return dt.strftime(DEADLINE_FORMAT)


# ----------------------------
# Deadline queries
# ----------------------------

def all_deadlines(conference: Conference, viewer_zone: str = DEFAULT_TIMEZONE) -> List[DeadlineInfo]:
    """Abstract deadline first, then paper submission; missing ones are omitted.

    A deadline that fails to parse is reported and treated as absent.
    """
    viewer = resolve_zone(viewer_zone) or timezone.utc
    out: List[DeadlineInfo] = []
    for label, raw in ((ABSTRACT_LABEL, conference.abstract_deadline), (SUBMISSION_LABEL, conference.deadline)):
        if not raw:
            continue
        try:
            dt = parse_deadline(raw, conference.timezone)
        except DeadlineParseError as exc:
            warn(f"[{conference.id}] {exc}")
            continue
        out.append(DeadlineInfo(label=label, datetime=dt, local_datetime=dt.astimezone(viewer)))
    return out


def _instant(info: DeadlineInfo) -> datetime:
    return as_utc(info.datetime)


def next_deadline(
    conference: Conference,
    reference: Optional[datetime] = None,
    viewer_zone: str = DEFAULT_TIMEZONE,
) -> Optional[DeadlineInfo]:
    """Earliest deadline strictly after ``reference``.

    Falls back to the chronologically last (most recently expired) deadline
    when none is upcoming, and returns None only when there are no deadlines.
    """
    deadlines = all_deadlines(conference, viewer_zone)
    if not deadlines:
        return None

    ref = as_utc(reference or utc_now())
    upcoming = [d for d in deadlines if is_upcoming(d, ref)]
    if upcoming:
        return min(upcoming, key=_instant)
    return max(deadlines, key=_instant)


def next_upcoming_deadline(
    conference: Conference,
    reference: Optional[datetime] = None,
    viewer_zone: str = DEFAULT_TIMEZONE,
) -> Optional[DeadlineInfo]:
    """Earliest deadline strictly after ``reference``, without the expired fallback."""
    ref = as_utc(reference or utc_now())
    upcoming = [d for d in all_deadlines(conference, viewer_zone) if is_upcoming(d, ref)]
    return min(upcoming, key=_instant) if upcoming else None


def is_upcoming(info: DeadlineInfo, reference: Optional[datetime] = None) -> bool:
    return _instant(info) > as_utc(reference or utc_now())


def days_until(deadline: datetime, now: Optional[datetime] = None) -> int:
    """Calendar days until ``deadline`` (ceil), counted in the deadline's zone.

    Whole days are stepped in wall-clock time so a DST change does not turn a
    23 or 25 hour day into an off-by-one. Past deadlines give zero or less.
    """
    now_local = as_utc(now or utc_now()).astimezone(deadline.tzinfo)
    days = (deadline.date() - now_local.date()).days
    anchor = dateutil_tz.resolve_imaginary(now_local + timedelta(days=days))
    if as_utc(anchor) < as_utc(deadline):
        days += 1
    return days
