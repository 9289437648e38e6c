from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone

import pytest

from deadlines_bot.batch import build_batch, post_channel_digest, run_notification_cycle
from deadlines_bot.dispatch import DeliveryResult
from deadlines_bot.errors import ProviderError
from deadlines_bot.models import SUBMISSION_LABEL, ReminderPolicy
from deadlines_bot.provider import StaticProvider
from deadlines_bot.store import MemoryStore, PreferenceStore

from .helpers import SCENARIO_NOW, deadline_in, make_conference

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


class FakeDispatcher:
    def __init__(self, fail=(), explode=()):
        self.fail = set(fail)
        self.explode = set(explode)
        self.sent = {}
        self._lock = threading.Lock()

    def deliver(self, recipient, text):
        rid = recipient.recipient_id
        if rid in self.explode:
            raise RuntimeError("connection reset")
        if rid in self.fail:
            return DeliveryResult(rid, ok=False, error="channel_not_found")
        with self._lock:
            self.sent[rid] = text
        return DeliveryResult(rid, ok=True)


class BrokenProvider:
    def get_conferences(self):
        raise ProviderError("feed down")


# ---------------------------------------------------------------------------
# build_batch
# ---------------------------------------------------------------------------


def test_scenario_batch(cvpr25, policy):
    items = build_batch([cvpr25], policy, SCENARIO_NOW)
    assert len(items) == 1
    assert items[0].deadline.label == SUBMISSION_LABEL
    assert items[0].days_left == 4


def test_subject_union_lists_conference_once(policy):
    conf = make_conference("mlsec25", sub=("ML", "SEC"), deadline=deadline_in(3, NOW))
    policy.subjects = ("ML", "NLP")
    items = build_batch([conf], policy, NOW)
    assert [it.conference.id for it in items] == ["mlsec25"]


def test_subject_filter_excludes_other_subjects(policy):
    conf = make_conference("cv25", sub=("CV",), deadline=deadline_in(3, NOW))
    policy.subjects = ("ML",)
    assert build_batch([conf], policy, NOW) == []


def test_no_subjects_means_all(policy):
    confs = [make_conference("a25", sub=("CV",), deadline=deadline_in(3, NOW)),
             make_conference("b25", sub=("SEC",), deadline=deadline_in(2, NOW))]
    assert len(build_batch(confs, policy, NOW)) == 2


def test_drops_expired_undated_and_not_due(policy):
    confs = [
        make_conference("expired25", deadline=deadline_in(-1, NOW)),
        make_conference("undated25"),
        make_conference("notdue25", deadline=deadline_in(12, NOW)),
        make_conference("due25", deadline=deadline_in(7, NOW)),
    ]
    assert [it.conference.id for it in build_batch(confs, policy, NOW)] == ["due25"]


def test_expired_abstract_does_not_hide_paper_deadline(policy):
    conf = make_conference("p25", abstract_deadline=deadline_in(-2, NOW), deadline=deadline_in(30, NOW))
    items = build_batch([conf], policy, NOW)
    assert items[0].deadline.label == SUBMISSION_LABEL
    assert items[0].days_left == 30


def test_sorted_nearest_first(policy):
    confs = [
        make_conference("c25", deadline=deadline_in(30, NOW)),
        make_conference("a25", deadline=deadline_in(1, NOW)),
        make_conference("b25", deadline=deadline_in(7, NOW)),
    ]
    assert [it.conference.id for it in build_batch(confs, policy, NOW)] == ["a25", "b25", "c25"]


def test_deadlines_shown_in_recipient_zone(policy):
    policy.timezone = "Asia/Tokyo"
    conf = make_conference("t25", deadline=deadline_in(3, NOW))
    item = build_batch([conf], policy, NOW)[0]
    assert item.deadline.local_datetime.utcoffset() == timedelta(hours=9)


def test_empty_input_gives_empty_batch(policy):
    assert build_batch([], policy, NOW) == []
    assert build_batch(None, policy, NOW) == []


# ---------------------------------------------------------------------------
# run_notification_cycle
# ---------------------------------------------------------------------------


@pytest.fixture
def stores():
    kv = MemoryStore()
    users = PreferenceStore(kv, "user")
    channels = PreferenceStore(kv, "channel")
    return users, channels


def test_one_failure_does_not_block_others(stores):
    users, channels = stores
    users.update("UA", notifications_enabled=True, reminder_days=[3])
    users.update("UB", notifications_enabled=True, reminder_days=[3])
    channels.subscribe("C1")
    provider = StaticProvider([make_conference("soon25", deadline=deadline_in(2, NOW))])
    dispatcher = FakeDispatcher(fail={"UA"})

    report = run_notification_cycle(provider, [users, channels], dispatcher, now=NOW, workers=2)

    assert report.recipients == 3
    assert report.delivered == 2
    assert report.failed == 1
    assert set(dispatcher.sent) == {"UB", "C1"}
    assert "UA" in report.errors[0]
    assert users.get("UB").last_notified
    assert users.get("UA").last_notified is None


def test_unreadable_policy_does_not_block_others(stores, capsys):
    users, _ = stores
    users.update("UB", notifications_enabled=True, reminder_days=[3])
    users.kv.set("user:UA", {"recipient_id": "UA", "notifications_enabled": True, "reminder_days": ["x"]})
    users.kv.sadd("users:all", "UA")
    provider = StaticProvider([make_conference("soon25", deadline=deadline_in(2, NOW))])
    dispatcher = FakeDispatcher()

    report = run_notification_cycle(provider, [users], dispatcher, now=NOW)

    assert set(dispatcher.sent) == {"UB"}
    assert report.recipients == 2
    assert report.delivered == 1
    assert report.failed == 1
    assert report.errors[0].startswith("UA: unreadable policy")
    assert [p.recipient_id for p in users.list_enabled()] == ["UB"]
    assert "UA" in capsys.readouterr().err


class FullDiskStore(MemoryStore):
    def set(self, key, value):
        if key == "user:UA" and value.get("last_notified"):
            raise OSError("disk full")
        super().set(key, value)


def test_failed_mark_notified_keeps_cycle_going():
    users = PreferenceStore(FullDiskStore(), "user")
    users.update("UA", notifications_enabled=True)
    users.update("UB", notifications_enabled=True)
    provider = StaticProvider([make_conference("soon25", deadline=deadline_in(1, NOW))])
    dispatcher = FakeDispatcher()

    report = run_notification_cycle(provider, [users], dispatcher, now=NOW, workers=1)

    assert report.delivered == 2
    assert report.failed == 0
    assert set(dispatcher.sent) == {"UA", "UB"}
    assert "disk full" in report.errors[0]
    assert users.get("UB").last_notified
    assert users.get("UA").last_notified is None


def test_raising_dispatcher_is_isolated(stores):
    users, _ = stores
    users.update("UA", notifications_enabled=True)
    users.update("UB", notifications_enabled=True)
    provider = StaticProvider([make_conference("soon25", deadline=deadline_in(1, NOW))])
    dispatcher = FakeDispatcher(explode={"UA"})

    report = run_notification_cycle(provider, [users], dispatcher, now=NOW)

    assert report.delivered == 1
    assert report.failed == 1
    assert "connection reset" in report.errors[0]


def test_disabled_and_not_due_recipients(stores):
    users, _ = stores
    users.update("off", notifications_enabled=False)
    users.update("far", notifications_enabled=True, reminder_days=[7])
    provider = StaticProvider([make_conference("soon25", deadline=deadline_in(20, NOW))])
    dispatcher = FakeDispatcher()

    report = run_notification_cycle(provider, [users], dispatcher, now=NOW)

    assert report.recipients == 1
    assert report.skipped == 1
    assert dispatcher.sent == {}
    assert report.ok


def test_provider_outage_degrades_to_empty_cycle(stores, capsys):
    users, _ = stores
    users.update("UA", notifications_enabled=True)
    report = run_notification_cycle(BrokenProvider(), [users], FakeDispatcher(), now=NOW)

    assert report.delivered == 0
    assert report.recipients == 0
    assert not report.ok
    assert "feed down" in capsys.readouterr().err


def test_empty_feed_sends_nothing(stores):
    users, _ = stores
    users.update("UA", notifications_enabled=True)
    dispatcher = FakeDispatcher()
    report = run_notification_cycle(StaticProvider([]), [users], dispatcher, now=NOW)
    assert report.recipients == 0
    assert dispatcher.sent == {}


# ---------------------------------------------------------------------------
# post_channel_digest
# ---------------------------------------------------------------------------


def test_channel_digest_lists_upcoming():
    provider = StaticProvider([
        make_conference("later25", title="LATER", deadline=deadline_in(40, NOW)),
        make_conference("soon25", title="SOON", deadline=deadline_in(2, NOW)),
        make_conference("gone25", title="GONE", deadline=deadline_in(-2, NOW)),
    ])
    dispatcher = FakeDispatcher()

    result = post_channel_digest(provider, dispatcher, "C42", count=5, now=NOW)

    assert result.ok
    text = dispatcher.sent["C42"]
    assert text.index("SOON") < text.index("LATER")
    assert "GONE" not in text


def test_channel_digest_feed_outage(capsys):
    dispatcher = FakeDispatcher()
    assert post_channel_digest(BrokenProvider(), dispatcher, "C42", now=NOW) is None
    assert dispatcher.sent == {}
    assert "feed down" in capsys.readouterr().err


def test_channel_digest_nothing_to_post():
    dispatcher = FakeDispatcher()
    assert post_channel_digest(StaticProvider([]), dispatcher, "C42", now=NOW) is None
    assert dispatcher.sent == {}


def test_subjects_filtered_per_recipient(stores):
    users, _ = stores
    users.update("UA", notifications_enabled=True, subjects=["CV"])
    users.update("UB", notifications_enabled=True, subjects=["ML"])
    provider = StaticProvider([make_conference("ml25", sub=("ML",), deadline=deadline_in(3, NOW))])
    dispatcher = FakeDispatcher()

    run_notification_cycle(provider, [users], dispatcher, now=NOW)

    assert set(dispatcher.sent) == {"UB"}
    assert isinstance(users.get("UA"), ReminderPolicy)
