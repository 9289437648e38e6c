"""
Command line entry point, meant to be run from cron.

  python -m deadlines_bot notify              # per-recipient reminders
  python -m deadlines_bot digest [--channel]  # upcoming list to one channel
  python -m deadlines_bot upcoming [--days N] [--subject ML] [--limit N]
"""

from __future__ import annotations

import argparse
import sys
from typing import List, Optional

from . import config
from .batch import post_channel_digest, run_notification_cycle
from .config import require_env
from .dispatch import SlackClientCache, SlackDispatcher
from .messages import render_deadline_list
from .provider import ConferenceProvider
from .queries import filter_by_subject, upcoming_deadlines, upcoming_within
from .store import JsonFileStore, PreferenceStore, TeamTokenStore


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="deadlines_bot", description="Conference deadline reminders for Slack")
    parser.add_argument("--feed-url", default=None, help="override CONFERENCES_DATA_URL")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("notify", help="send due reminders to subscribed users and channels")

    digest = sub.add_parser("digest", help="post the next upcoming deadlines to a channel")
    digest.add_argument("--channel", default=None, help="defaults to SLACK_REMINDERS_CHANNEL_ID")
    digest.add_argument("--count", type=int, default=None, help="defaults to REMINDERS_COUNT")

    upcoming = sub.add_parser("upcoming", help="print upcoming deadlines")
    upcoming.add_argument("--days", type=int, default=None, help="only deadlines within N days")
    upcoming.add_argument("--subject", default=None)
    upcoming.add_argument("--limit", type=int, default=config.MAX_CONFERENCES_PER_MESSAGE)
    return parser


def _dispatcher(kv) -> SlackDispatcher:
    return SlackDispatcher(SlackClientCache(TeamTokenStore(kv)))


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    provider = ConferenceProvider(url=args.feed_url)

    if args.command == "notify":
        kv = JsonFileStore(config.PREFERENCES_PATH)
        stores = [PreferenceStore(kv, "user"), PreferenceStore(kv, "channel")]
        report = run_notification_cycle(provider, stores, _dispatcher(kv))
        print(report.summary())
        for err in report.errors:
            print(f"  {err}", file=sys.stderr)
        return 0 if report.ok else 1

    if args.command == "digest":
        channel = args.channel or config.SLACK_REMINDERS_CHANNEL_ID
        require_env("SLACK_REMINDERS_CHANNEL_ID", channel)
        kv = JsonFileStore(config.PREFERENCES_PATH)
        result = post_channel_digest(provider, _dispatcher(kv), channel, count=args.count)
        if result is not None and not result.ok:
            print(f"Digest failed: {result.error}", file=sys.stderr)
            return 1
        return 0

    conferences = provider.get_conferences()
    if args.subject:
        conferences = filter_by_subject(conferences, args.subject)
    if args.days is not None:
        items = upcoming_within(conferences, args.days)[: args.limit]
    else:
        items = upcoming_deadlines(conferences, limit=args.limit)
    print(render_deadline_list(items))
    return 0


if __name__ == "__main__":
    try:
        sys.exit(main())
    except Exception as exc:
        print(f"Fatal error: {exc}", file=sys.stderr)
        raise
