from __future__ import annotations

from datetime import datetime, timedelta, timezone

from dateutil import tz as dateutil_tz

from deadlines_bot.models import Conference

LA = dateutil_tz.gettz("America/Los_Angeles")

# 2025-11-12 12:00 in Los Angeles
SCENARIO_NOW = datetime(2025, 11, 12, 12, 0, tzinfo=LA)


def make_conference(id="conf25", **kw) -> Conference:
    kw.setdefault("title", id.rstrip("0123456789").upper() or "CONF")
    kw.setdefault("year", 2025)
    kw.setdefault("timezone", "UTC")
    kw.setdefault("full_name", f"{kw['title']} Conference")
    return Conference(id=id, **kw)


def deadline_in(days: float, now: datetime = None) -> str:
    """UTC deadline string ``days`` from ``now``."""
    now = now or datetime.now(timezone.utc)
    return (now.astimezone(timezone.utc) + timedelta(days=days)).strftime("%Y-%m-%d %H:%M")
