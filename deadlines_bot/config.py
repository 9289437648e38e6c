"""
Environment-driven settings for the deadlines bot.

Optional env vars:
  - SLACK_BOT_TOKEN: fallback bot token when no per-team token is stored
  - SLACK_REMINDERS_CHANNEL_ID: channel for the daily digest
  - REMINDERS_COUNT: number of deadlines in the digest (default: 10)
  - CONFERENCES_DATA_URL: YAML feed with the conference list
  - CACHE_TTL_SECONDS: conference cache lifetime (default: 300)
  - PREFERENCES_PATH: JSON file backing the CLI preference store
  - DISPATCH_WORKERS: parallel Slack deliveries per cycle (default: 4)
  - DISPATCH_TIMEOUT: Slack API timeout in seconds (default: 30)
  - DRY_RUN: "1" prints messages instead of posting to Slack
  - DEBUG: "1" prints debug logs
"""

from __future__ import annotations

import os
import sys
from typing import Dict, Tuple

_TRUTHY = {"1", "true", "yes", "y"}


def env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in _TRUTHY


# ----------------------------
# Global config
# ----------------------------

SLACK_BOT_TOKEN = os.getenv("SLACK_BOT_TOKEN", "")
SLACK_REMINDERS_CHANNEL_ID = os.getenv("SLACK_REMINDERS_CHANNEL_ID", "")
REMINDERS_COUNT = int(os.getenv("REMINDERS_COUNT", "10"))

CONFERENCES_DATA_URL = os.getenv("CONFERENCES_DATA_URL", "http://localhost:3000/data/conferences.yaml")
CACHE_TTL_SECONDS = int(os.getenv("CACHE_TTL_SECONDS", "300"))

PREFERENCES_PATH = os.getenv("PREFERENCES_PATH", "deadlines_bot_store.json")

DISPATCH_WORKERS = int(os.getenv("DISPATCH_WORKERS", "4"))
DISPATCH_TIMEOUT = int(os.getenv("DISPATCH_TIMEOUT", "30"))

DEBUG = env_flag("DEBUG")
DRY_RUN = env_flag("DRY_RUN")


# ----------------------------
# Notification defaults
# ----------------------------

DEFAULT_REMINDER_DAYS: Tuple[int, ...] = (1, 3, 7)
DEFAULT_TIMEZONE = "UTC"
MAX_CONFERENCES_PER_MESSAGE = 10

CRITICAL_DAYS = 1
URGENT_DAYS = 3
UPCOMING_DAYS = 7

URGENCY_EMOJIS = {
    "critical": "🔴",
    "urgent": "🟡",
    "upcoming": "🟢",
}

DEFAULT_SUBJECT = "General"

# code -> (label, emoji)
SUBJECTS: Dict[str, Tuple[str, str]] = {
    "ML": ("Machine Learning", "🤖"),
    "CV": ("Computer Vision", "👁️"),
    "NLP": ("Natural Language Processing", "💬"),
    "DM": ("Data Mining", "📊"),
    "SP": ("Signal Processing", "📡"),
    "HCI": ("Human-Computer Interaction", "🖱️"),
    "RO": ("Robotics", "🦾"),
    "SEC": ("Security", "🔒"),
    "PRIV": ("Privacy", "🕵️"),
    "CONF": ("Conference", "🎤"),
    "SHOP": ("Workshop", "🛠️"),
    "CG": ("Computer Graphics", "🎨"),
    "KR": ("Knowledge Representation", "🧠"),
    "AP": ("Applications", "⚙️"),
    "AI": ("Artificial Intelligence", "🧠"),
    "Global Health": ("Global Health", "🏥"),
    "Med-Imaging": ("Medical Imaging", "🔬"),
    DEFAULT_SUBJECT: ("General", "📌"),
}


def subject_emoji(code: str) -> str:
    entry = SUBJECTS.get(code)
    return entry[1] if entry else "📌"


# ----------------------------
# Utilities
# ----------------------------

def log(msg: str) -> None:
    if DEBUG:
        print(msg)


def warn(msg: str) -> None:
    print(f"[warn] {msg}", file=sys.stderr)


def require_env(name: str, value: str) -> None:
    if not value:
        raise SystemExit(f"Missing required environment variable: {name}")
