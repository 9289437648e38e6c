"""
Plain mrkdwn text for reminders and deadline lists.
"""

from __future__ import annotations

from datetime import date
from typing import List, Optional, Sequence

from .config import (
    CRITICAL_DAYS,
    MAX_CONFERENCES_PER_MESSAGE,
    UPCOMING_DAYS,
    URGENCY_EMOJIS,
    URGENT_DAYS,
    subject_emoji,
)
from .models import BatchItem, ReminderPolicy

DISPLAY_FORMAT = "%b %d, %H:%M"


def urgency_emoji(days_left: int) -> str:
    if days_left <= CRITICAL_DAYS:
        return URGENCY_EMOJIS["critical"]
    if days_left <= URGENT_DAYS:
        return URGENCY_EMOJIS["urgent"]
    if days_left <= UPCOMING_DAYS:
        return URGENCY_EMOJIS["upcoming"]
    return "📅"


def format_time_remaining(days: int) -> str:
    if days < 0:
        return "Expired"
    if days == 0:
        return "Today!"
    if days == 1:
        return "1 day"
    if days < 7:
        return f"{days} days"
    if days < 30:
        weeks = days // 7
        return "1 week" if weeks == 1 else f"{weeks} weeks"
    months = days // 30
    return "1 month" if months == 1 else f"{months} months"


def _item_lines(item: BatchItem, show_zone: bool) -> List[str]:
    conf, dl = item.conference, item.deadline
    subjects = " ".join(subject_emoji(s) for s in conf.sub)
    when = dl.local_datetime.strftime(DISPLAY_FORMAT)
    if show_zone:
        when = f"{when} ({conf.timezone})"
    lines = [
        f"{urgency_emoji(item.days_left)} *{conf.display_name}* {subjects}",
        f"{dl.label}: {when} • ⏰ {format_time_remaining(item.days_left)}",
    ]
    if conf.link:
        lines.append(f"<{conf.link}|Website>")
    return lines


def render_batch(items: Sequence[BatchItem], policy: Optional[ReminderPolicy] = None) -> str:
    """Reminder for one recipient; deadlines shown in the recipient's timezone."""
    n = len(items)
    noun = "deadline" if n == 1 else "deadlines"
    lines: List[str] = ["*🔔 Deadline Reminder*"]
    if policy is not None and policy.kind == "channel":
        lines.append(f"*{n}* upcoming conference {noun}:")
    else:
        lines.append(f"You have *{n}* upcoming conference {noun}:")
    if policy is not None:
        lines.append(f"_Times in {policy.timezone}_")
    lines.append("")

    for item in items[:MAX_CONFERENCES_PER_MESSAGE]:
        lines.extend(_item_lines(item, show_zone=True))
        lines.append("")

    if n > MAX_CONFERENCES_PER_MESSAGE:
        lines.append(f"_…and {n - MAX_CONFERENCES_PER_MESSAGE} more_")
    return "\n".join(lines).rstrip()


def render_deadline_list(items: Sequence[BatchItem], today: Optional[date] = None) -> str:
    lines: List[str] = ["*📅 Upcoming Conference Deadlines*"]
    if today is not None:
        lines.append(f"_Automated reminder • {today.strftime('%A, %B %d, %Y')}_")
    lines.append("")

    if not items:
        lines.append("✨ No upcoming deadlines found. Check back later!")
        return "\n".join(lines)

    for item in items:
        lines.extend(_item_lines(item, show_zone=False))
        lines.append("")
    return "\n".join(lines).rstrip()
