from __future__ import annotations


class DeadlineParseError(ValueError):
    """A deadline string could not be turned into a zoned instant."""

    def __init__(self, raw: str, zone: str, reason: str) -> None:
        super().__init__(f"Could not parse deadline {raw!r} in zone {zone!r}: {reason}")
        self.raw = raw
        self.zone = zone
        self.reason = reason


class InvalidFormat(DeadlineParseError):
    """Input does not match ``YYYY-MM-DD HH:MM``."""


class InvalidZone(DeadlineParseError):
    """Zone is not a recognized IANA identifier."""


class InvalidCalendarValue(DeadlineParseError):
    """Date/time does not exist (Feb 30, DST spring-forward gap, ...)."""


class PolicyError(ValueError):
    """Rejected reminder policy update."""


class ProviderError(RuntimeError):
    """Conference feed unavailable and nothing cached to fall back on."""


class MissingTokenError(RuntimeError):
    """No Slack token for a team and no SLACK_BOT_TOKEN fallback."""
