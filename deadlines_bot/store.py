"""
Recipient preferences and Slack team tokens on top of a small key-value store.

Keys:
  user:<id> / channel:<id>        -> ReminderPolicy as a dict
  users:all / channels:all        -> set of recipient ids
  slack:team:<id>:token           -> bot token
  slack:team:<id>:metadata        -> installation metadata
  slack:teams                     -> set of team ids
"""

from __future__ import annotations

import dataclasses
import json
import os
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, Set

from . import config
from .config import SUBJECTS, log, warn
from .errors import MissingTokenError, PolicyError
from .models import ReminderPolicy
from .timeutil import resolve_zone

KINDS = ("user", "channel")
UPDATABLE_FIELDS = {"reminder_days", "subjects", "notifications_enabled", "timezone", "team_id", "name"}


class KeyValueStore(Protocol):
    def get(self, key: str) -> Any: ...

    def set(self, key: str, value: Any) -> None: ...

    def delete(self, key: str) -> None: ...

    def sadd(self, key: str, member: str) -> None: ...

    def srem(self, key: str, member: str) -> None: ...

    def smembers(self, key: str) -> Set[str]: ...

    def scard(self, key: str) -> int: ...


class MemoryStore:
    def __init__(self) -> None:
        self._values: Dict[str, Any] = {}
        self._sets: Dict[str, Set[str]] = {}

    def get(self, key: str) -> Any:
        return self._values.get(key)

    def set(self, key: str, value: Any) -> None:
        self._values[key] = value

    def delete(self, key: str) -> None:
        self._values.pop(key, None)
        self._sets.pop(key, None)

    def sadd(self, key: str, member: str) -> None:
        self._sets.setdefault(key, set()).add(member)

    def srem(self, key: str, member: str) -> None:
        self._sets.get(key, set()).discard(member)

    def smembers(self, key: str) -> Set[str]:
        return set(self._sets.get(key, set()))

    def scard(self, key: str) -> int:
        return len(self._sets.get(key, set()))


class JsonFileStore(MemoryStore):
    """MemoryStore persisted to a single JSON file after every write."""

    def __init__(self, path: str) -> None:
        super().__init__()
        self.path = path
        if os.path.exists(path):
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            self._values = dict(data.get("values") or {})
            self._sets = {k: set(v) for k, v in (data.get("sets") or {}).items()}

    def _save(self) -> None:
        data = {"values": self._values, "sets": {k: sorted(v) for k, v in self._sets.items()}}
        tmp = f"{self.path}.tmp"
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, sort_keys=True)
        os.replace(tmp, self.path)

    def set(self, key: str, value: Any) -> None:
        super().set(key, value)
        self._save()

    def delete(self, key: str) -> None:
        super().delete(key)
        self._save()

    def sadd(self, key: str, member: str) -> None:
        super().sadd(key, member)
        self._save()

    def srem(self, key: str, member: str) -> None:
        super().srem(key, member)
        self._save()


# ----------------------------
# Policy validation
# ----------------------------

def validate_reminder_days(days: Iterable[Any]) -> tuple:
    values = list(days or [])
    if not values:
        raise PolicyError("reminder_days must contain at least one value")
    out = set()
    for d in values:
        if isinstance(d, bool) or not isinstance(d, int):
            raise PolicyError(f"reminder day must be an integer, got {d!r}")
        if d <= 0:
            raise PolicyError(f"reminder day must be positive, got {d}")
        out.add(d)
    return tuple(sorted(out))


def validate_subjects(subjects: Iterable[str]) -> tuple:
    out: List[str] = []
    for s in subjects or []:
        if s not in SUBJECTS:
            raise PolicyError(f"Unknown subject: {s!r}")
        if s not in out:
            out.append(s)
    return tuple(out)


def validate_timezone(name: str) -> str:
    if resolve_zone(name) is None:
        raise PolicyError(f"Unknown timezone: {name!r}")
    return name.strip()


def _validate_changes(changes: Dict[str, Any]) -> Dict[str, Any]:
    unknown = set(changes) - UPDATABLE_FIELDS
    if unknown:
        raise PolicyError(f"Cannot update field(s): {', '.join(sorted(unknown))}")
    out = dict(changes)
    if "reminder_days" in out:
        out["reminder_days"] = validate_reminder_days(out["reminder_days"])
    if "subjects" in out:
        out["subjects"] = validate_subjects(out["subjects"])
    if "timezone" in out:
        out["timezone"] = validate_timezone(out["timezone"])
    if "notifications_enabled" in out:
        out["notifications_enabled"] = bool(out["notifications_enabled"])
    return out


def _iso_now() -> str:
    return datetime.now(timezone.utc).isoformat()


# ----------------------------
# Preference store
# ----------------------------

class PreferenceStore:
    """Reminder policies of one recipient kind ("user" or "channel")."""

    def __init__(self, kv: KeyValueStore, kind: str = "user", clock: Callable[[], str] = _iso_now) -> None:
        if kind not in KINDS:
            raise ValueError(f"kind must be one of {KINDS}, got {kind!r}")
        self.kv = kv
        self.kind = kind
        self.clock = clock
        self.list_key = f"{kind}s:all"

    def _key(self, recipient_id: str) -> str:
        return f"{self.kind}:{recipient_id}"

    def _defaults(self, recipient_id: str) -> ReminderPolicy:
        now = self.clock()
        return ReminderPolicy(
            recipient_id=recipient_id,
            kind=self.kind,
            notifications_enabled=False,
            created_at=now,
            updated_at=now,
        )

    def get(self, recipient_id: str) -> Optional[ReminderPolicy]:
        data = self.kv.get(self._key(recipient_id))
        if not data:
            return None
        return ReminderPolicy.from_dict(data)

    def update(self, recipient_id: str, **changes: Any) -> ReminderPolicy:
        """Apply a partial update, creating the policy with defaults if needed."""
        validated = _validate_changes(changes)
        base = self.get(recipient_id) or self._defaults(recipient_id)
        policy = dataclasses.replace(base, updated_at=self.clock(), **validated)

        self.kv.set(self._key(recipient_id), policy.to_dict())
        self.kv.sadd(self.list_key, recipient_id)
        log(f"[store] {self.kind} {recipient_id} updated: {sorted(validated)}")
        return policy

    def enable(self, recipient_id: str) -> ReminderPolicy:
        return self.update(recipient_id, notifications_enabled=True)

    def disable(self, recipient_id: str) -> ReminderPolicy:
        return self.update(recipient_id, notifications_enabled=False)

    def set_subjects(self, recipient_id: str, subjects: Iterable[str]) -> ReminderPolicy:
        return self.update(recipient_id, subjects=list(subjects))

    def set_reminder_days(self, recipient_id: str, reminder_days: Iterable[int]) -> ReminderPolicy:
        return self.update(recipient_id, reminder_days=list(reminder_days))

    def set_timezone(self, recipient_id: str, tz_name: str) -> ReminderPolicy:
        return self.update(recipient_id, timezone=tz_name)

    def subscribe(self, recipient_id: str, name: Optional[str] = None, team_id: Optional[str] = None) -> ReminderPolicy:
        changes: Dict[str, Any] = {"notifications_enabled": True}
        if name is not None:
            changes["name"] = name
        if team_id is not None:
            changes["team_id"] = team_id
        return self.update(recipient_id, **changes)

    def delete(self, recipient_id: str) -> None:
        self.kv.delete(self._key(recipient_id))
        self.kv.srem(self.list_key, recipient_id)
        log(f"[store] {self.kind} {recipient_id} deleted")

    def recipient_ids(self) -> List[str]:
        return sorted(self.kv.smembers(self.list_key))

    def list_enabled(self) -> List[ReminderPolicy]:
        """Enabled policies; records that fail to decode are warned and skipped."""
        out: List[ReminderPolicy] = []
        for rid in self.recipient_ids():
            try:
                policy = self.get(rid)
            except (TypeError, ValueError) as exc:
                warn(f"[store] {self.kind} {rid}: unreadable policy ({exc})")
                continue
            if policy and policy.notifications_enabled:
                out.append(policy)
        return out

    def count(self) -> int:
        return self.kv.scard(self.list_key)

    def mark_notified(self, recipient_id: str) -> None:
        policy = self.get(recipient_id)
        if policy is None:
            log(f"[store] cannot mark {self.kind} {recipient_id} notified: not found")
            return
        policy.last_notified = self.clock()
        self.kv.set(self._key(recipient_id), policy.to_dict())


# ----------------------------
# Team tokens
# ----------------------------

class TeamTokenStore:
    TEAMS_KEY = "slack:teams"

    def __init__(self, kv: KeyValueStore) -> None:
        self.kv = kv

    def store_token(self, team_id: str, token: str, metadata: Optional[Dict[str, Any]] = None) -> None:
        self.kv.set(f"slack:team:{team_id}:token", token)
        if metadata is not None:
            self.kv.set(f"slack:team:{team_id}:metadata", dict(metadata))
        self.kv.sadd(self.TEAMS_KEY, team_id)
        log(f"[tokens] stored token for team {team_id}")

    def get_token(self, team_id: str) -> Optional[str]:
        return self.kv.get(f"slack:team:{team_id}:token")

    def get_metadata(self, team_id: str) -> Optional[Dict[str, Any]]:
        return self.kv.get(f"slack:team:{team_id}:metadata")

    def remove_team(self, team_id: str) -> None:
        self.kv.delete(f"slack:team:{team_id}:token")
        self.kv.delete(f"slack:team:{team_id}:metadata")
        self.kv.srem(self.TEAMS_KEY, team_id)
        log(f"[tokens] removed team {team_id}")

    def list_teams(self) -> List[str]:
        return sorted(self.kv.smembers(self.TEAMS_KEY))

    def token_with_fallback(self, team_id: Optional[str] = None) -> str:
        """Per-team token if one is stored, else SLACK_BOT_TOKEN."""
        if team_id:
            token = self.get_token(team_id)
            if token:
                return token
            log(f"[tokens] no token for team {team_id}, falling back to SLACK_BOT_TOKEN")

        if not config.SLACK_BOT_TOKEN:
            raise MissingTokenError(
                "No Slack token available. Set SLACK_BOT_TOKEN or store a token for the team."
            )
        return config.SLACK_BOT_TOKEN
