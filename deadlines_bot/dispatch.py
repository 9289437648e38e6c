"""
Slack delivery, one message per recipient.

Delivery is fallible and per-recipient: errors come back as a failed
DeliveryResult instead of being raised, so one bad channel does not stop the
rest of a batch.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional

from slack_sdk import WebClient
from slack_sdk.errors import SlackApiError

from . import config
from .config import log
from .errors import MissingTokenError
from .models import ReminderPolicy
from .store import TeamTokenStore

_DEFAULT_TEAM = ""


@dataclass(frozen=True)
class DeliveryResult:
    recipient_id: str
    ok: bool
    error: Optional[str] = None


class SlackClientCache:
    """WebClient per Slack team, built lazily from stored tokens."""

    def __init__(self, tokens: TeamTokenStore, timeout: Optional[int] = None) -> None:
        self.tokens = tokens
        self.timeout = config.DISPATCH_TIMEOUT if timeout is None else timeout
        self._clients: Dict[str, WebClient] = {}

    def get(self, team_id: Optional[str] = None) -> WebClient:
        key = team_id or _DEFAULT_TEAM
        client = self._clients.get(key)
        if client is None:
            token = self.tokens.token_with_fallback(team_id)
            client = WebClient(token=token, timeout=self.timeout)
            self._clients[key] = client
            log(f"[slack] created client for team {key or '<default>'}")
        return client

    def evict(self, team_id: Optional[str] = None) -> None:
        self._clients.pop(team_id or _DEFAULT_TEAM, None)

    def clear(self) -> None:
        self._clients.clear()

    def __len__(self) -> int:
        return len(self._clients)


class SlackDispatcher:
    def __init__(self, clients: SlackClientCache, dry_run: Optional[bool] = None) -> None:
        self.clients = clients
        self.dry_run = config.DRY_RUN if dry_run is None else dry_run

    def deliver(self, recipient: ReminderPolicy, text: str) -> DeliveryResult:
        """Post ``text`` to a channel, or as a DM when the recipient is a user id."""
        if self.dry_run:
            print(f"--- {recipient.kind} {recipient.recipient_id} ---\n{text}")
            return DeliveryResult(recipient.recipient_id, ok=True)

        try:
            client = self.clients.get(recipient.team_id)
            client.chat_postMessage(channel=recipient.recipient_id, text=text)
        except SlackApiError as e:
            err = e.response.get("error") if getattr(e, "response", None) is not None else str(e)
            if err in {"invalid_auth", "token_revoked", "account_inactive"}:
                self.clients.evict(recipient.team_id)
            return DeliveryResult(recipient.recipient_id, ok=False, error=f"Slack API error: {err}")
        except (MissingTokenError, OSError) as e:
            return DeliveryResult(recipient.recipient_id, ok=False, error=str(e))

        return DeliveryResult(recipient.recipient_id, ok=True)
