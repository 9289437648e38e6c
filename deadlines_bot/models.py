from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date, datetime
from typing import Any, Dict, Optional, Tuple

from .config import DEFAULT_REMINDER_DAYS, DEFAULT_SUBJECT, DEFAULT_TIMEZONE

ABSTRACT_LABEL = "Abstract Deadline"
SUBMISSION_LABEL = "Paper Submission"


# ----------------------------
# Data model
# ----------------------------

@dataclass(frozen=True)
class Conference:
    """A conference as loaded from the feed.

    ``deadline`` and ``abstract_deadline`` stay as ``YYYY-MM-DD HH:MM`` wall-clock
    strings in ``timezone``; they are turned into instants on every query.
    """

    id: str
    title: str
    year: int
    timezone: str
    full_name: str = ""
    deadline: Optional[str] = None
    abstract_deadline: Optional[str] = None
    start: Optional[date] = None
    end: Optional[date] = None
    place: Optional[str] = None
    hindex: int = 0
    sub: Tuple[str, ...] = (DEFAULT_SUBJECT,)
    note: str = ""
    type: Optional[str] = None
    link: Optional[str] = None
    paperslink: Optional[str] = None
    pwclink: Optional[str] = None

    @property
    def display_name(self) -> str:
        return f"{self.title} {self.year}"


@dataclass(frozen=True)
class DeadlineInfo:
    label: str
    datetime: datetime  # in the conference's own zone
    local_datetime: datetime  # same instant in the viewer's zone


@dataclass(frozen=True)
class BatchItem:
    conference: Conference
    deadline: DeadlineInfo
    days_left: int


@dataclass
class ReminderPolicy:
    """Reminder settings of one recipient (a user or a channel)."""

    recipient_id: str
    kind: str = "user"
    reminder_days: Tuple[int, ...] = DEFAULT_REMINDER_DAYS
    subjects: Tuple[str, ...] = ()
    notifications_enabled: bool = False
    timezone: str = DEFAULT_TIMEZONE
    team_id: Optional[str] = None
    name: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""
    last_notified: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["reminder_days"] = list(self.reminder_days)
        data["subjects"] = list(self.subjects)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReminderPolicy":
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        if "reminder_days" in known:
            known["reminder_days"] = tuple(int(d) for d in known["reminder_days"])
        if "subjects" in known:
            known["subjects"] = tuple(known["subjects"] or ())
        return cls(**known)
