from __future__ import annotations

import pytest

from deadlines_bot import __main__ as cli
from deadlines_bot import config
from deadlines_bot.provider import StaticProvider
from deadlines_bot.store import JsonFileStore, PreferenceStore

from .helpers import deadline_in, make_conference


@pytest.fixture
def feed(monkeypatch):
    conferences = [
        make_conference("soon25", title="SOON", sub=("ML",), deadline=deadline_in(2.5)),
        make_conference("later25", title="LATER", sub=("CV",), deadline=deadline_in(40)),
    ]
    monkeypatch.setattr(cli, "ConferenceProvider", lambda url=None: StaticProvider(conferences))
    return conferences


def test_upcoming_prints_list(feed, capsys):
    assert cli.main(["upcoming"]) == 0
    out = capsys.readouterr().out
    assert out.index("SOON") < out.index("LATER")


def test_upcoming_days_and_subject(feed, capsys):
    cli.main(["upcoming", "--days", "7"])
    assert "LATER" not in capsys.readouterr().out

    cli.main(["upcoming", "--subject", "CV"])
    out = capsys.readouterr().out
    assert "LATER" in out and "SOON" not in out


def test_notify_dry_run(feed, tmp_path, monkeypatch, capsys):
    path = str(tmp_path / "prefs.json")
    PreferenceStore(JsonFileStore(path), "user").update("U1", notifications_enabled=True, reminder_days=[3])
    monkeypatch.setattr(config, "PREFERENCES_PATH", path)
    monkeypatch.setattr(config, "DRY_RUN", True)

    assert cli.main(["notify"]) == 0

    out = capsys.readouterr().out
    assert "--- user U1 ---" in out
    assert "recipients=1 delivered=1" in out
    assert PreferenceStore(JsonFileStore(path), "user").get("U1").last_notified


def test_digest_requires_channel(feed, monkeypatch):
    monkeypatch.setattr(config, "SLACK_REMINDERS_CHANNEL_ID", "")
    with pytest.raises(SystemExit):
        cli.main(["digest"])
