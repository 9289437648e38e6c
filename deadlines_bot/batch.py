"""
Reminder batches per recipient and the periodic notification cycle.

A cycle loads the conference snapshot once, builds one batch per enabled
recipient, and delivers the rendered messages in a small thread pool. Every
recipient is independent: a failure while building or delivering one batch
is recorded in the CycleReport and the loop moves on.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from . import config
from .config import log, warn
from .dispatch import DeliveryResult
from .matcher import is_due, normalize_thresholds
from .messages import render_batch, render_deadline_list
from .models import BatchItem, Conference, ReminderPolicy
from .queries import filter_by_subjects, upcoming_deadlines
from .timeutil import as_utc, days_until, next_upcoming_deadline, utc_now


@dataclass
class CycleReport:
    recipients: int = 0
    delivered: int = 0
    skipped: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def summary(self) -> str:
        return (
            f"recipients={self.recipients} delivered={self.delivered} "
            f"skipped={self.skipped} failed={self.failed}"
        )


def build_batch(
    conferences: Optional[Sequence[Conference]],
    policy: ReminderPolicy,
    now: Optional[datetime] = None,
) -> List[BatchItem]:
    """Deadlines that are due for ``policy`` on this run, nearest first."""
    if not conferences:
        log(f"[batch] no conferences loaded, empty batch for {policy.recipient_id}")
        return []

    ref = as_utc(now or utc_now())
    thresholds = normalize_thresholds(policy.reminder_days)

    items: List[BatchItem] = []
    for conf in filter_by_subjects(conferences, policy.subjects):
        dl = next_upcoming_deadline(conf, ref, policy.timezone)
        if dl is None:
            continue
        days_left = days_until(dl.datetime, ref)
        if not is_due(days_left, thresholds):
            continue
        items.append(BatchItem(conference=conf, deadline=dl, days_left=days_left))

    items.sort(key=lambda it: as_utc(it.deadline.datetime))
    return items


def _load(provider) -> Optional[List[Conference]]:
    try:
        return provider.get_conferences()
    except Exception as exc:
        warn(f"Could not load conferences: {exc}")
        return None


def run_notification_cycle(
    provider,
    stores: Sequence,
    dispatcher,
    now: Optional[datetime] = None,
    workers: Optional[int] = None,
) -> CycleReport:
    """Build and deliver reminders for every enabled recipient of ``stores``."""
    report = CycleReport()
    ref = as_utc(now or utc_now())

    conferences = _load(provider)
    if not conferences:
        if conferences is None:
            report.errors.append("conference feed unavailable")
        else:
            warn("Conference feed is empty, nothing to send")
        return report

    jobs: List[Tuple[object, ReminderPolicy, str]] = []
    for store in stores:
        for rid in store.recipient_ids():
            try:
                policy = store.get(rid)
            except Exception as exc:
                report.recipients += 1
                report.failed += 1
                report.errors.append(f"{rid}: unreadable policy: {exc}")
                warn(f"[batch] {store.kind} {rid}: unreadable policy: {exc}")
                continue
            if policy is None or not policy.notifications_enabled:
                continue

            report.recipients += 1
            try:
                items = build_batch(conferences, policy, ref)
            except Exception as exc:
                report.failed += 1
                report.errors.append(f"{policy.recipient_id}: {exc}")
                warn(f"[batch] {policy.kind} {policy.recipient_id}: {exc}")
                continue
            if not items:
                report.skipped += 1
                continue
            jobs.append((store, policy, render_batch(items, policy)))

    if jobs:
        max_workers = max(1, min(workers or config.DISPATCH_WORKERS, len(jobs)))
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            futures = {
                pool.submit(dispatcher.deliver, policy, text): (store, policy)
                for store, policy, text in jobs
            }
            for fut in as_completed(futures):
                store, policy = futures[fut]
                try:
                    result: DeliveryResult = fut.result()
                except Exception as exc:
                    result = DeliveryResult(policy.recipient_id, ok=False, error=str(exc))

                if result.ok:
                    report.delivered += 1
                    log(f"[batch] delivered to {policy.kind} {policy.recipient_id}")
                    try:
                        store.mark_notified(policy.recipient_id)
                    except Exception as exc:
                        report.errors.append(f"{policy.recipient_id}: delivered but not marked notified: {exc}")
                        warn(f"[batch] could not mark {policy.kind} {policy.recipient_id} notified: {exc}")
                else:
                    report.failed += 1
                    report.errors.append(f"{policy.recipient_id}: {result.error}")
                    warn(f"[batch] delivery to {policy.kind} {policy.recipient_id} failed: {result.error}")

    log(f"[batch] cycle done: {report.summary()}")
    return report


def post_channel_digest(
    provider,
    dispatcher,
    channel_id: str,
    count: Optional[int] = None,
    now: Optional[datetime] = None,
    team_id: Optional[str] = None,
) -> Optional[DeliveryResult]:
    """Post the next ``count`` upcoming deadlines to one channel.

    Returns None when the feed is unavailable or there is nothing to post.
    """
    ref = as_utc(now or utc_now())
    conferences = _load(provider)
    if conferences is None:
        return None

    items = upcoming_deadlines(conferences, limit=count or config.REMINDERS_COUNT, now=ref)
    if not items:
        log("[digest] No upcoming deadlines to post")
        return None

    recipient = ReminderPolicy(recipient_id=channel_id, kind="channel", team_id=team_id)
    return dispatcher.deliver(recipient, render_deadline_list(items, today=ref.date()))
