"""
Decide whether a deadline is due for a reminder on this run.

The trigger runs roughly once a day at no fixed time, so an exact
``days_left == t`` comparison would miss reminders whenever a run is late or
skipped. Two rules make it robust:

  - tolerance: due when ``days_left`` is within one day of any threshold
  - final countdown: due on every run once ``days_left <= min(thresholds)``

Inside the smallest window a reminder goes out on every run.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional, Tuple

from .timeutil import days_until

TOLERANCE_DAYS = 1


def normalize_thresholds(reminder_days: Iterable[int]) -> Tuple[int, ...]:
    """Deduplicate and sort; input order and repeats carry no meaning."""
    thresholds = tuple(sorted(set(reminder_days)))
    if not thresholds:
        raise ValueError("reminder_days must not be empty")
    return thresholds


def is_due(days_left: int, reminder_days: Iterable[int]) -> bool:
    thresholds = normalize_thresholds(reminder_days)
    if days_left <= thresholds[0]:
        return True
    return any(abs(days_left - t) <= TOLERANCE_DAYS for t in thresholds)


def deadline_is_due(deadline: datetime, reminder_days: Iterable[int], now: Optional[datetime] = None) -> bool:
    return is_due(days_until(deadline, now), reminder_days)
