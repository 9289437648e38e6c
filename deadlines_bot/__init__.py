"""Conference deadline tracking and Slack reminders."""

from .batch import CycleReport, build_batch, post_channel_digest, run_notification_cycle
from .errors import (
    DeadlineParseError,
    InvalidCalendarValue,
    InvalidFormat,
    InvalidZone,
    MissingTokenError,
    PolicyError,
    ProviderError,
)
from .matcher import is_due
from .models import BatchItem, Conference, DeadlineInfo, ReminderPolicy
from .queries import (
    filter_by_subject,
    filter_by_year,
    search,
    sort_conferences,
    upcoming_deadlines,
    upcoming_within,
)
from .timeutil import all_deadlines, days_until, next_deadline, parse_deadline

__version__ = "0.1.0"
