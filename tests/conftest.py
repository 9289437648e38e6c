from __future__ import annotations

import pytest

from deadlines_bot.models import Conference, ReminderPolicy

from .helpers import make_conference


@pytest.fixture
def cvpr25() -> Conference:
    return make_conference(
        "cvpr25",
        title="CVPR",
        full_name="IEEE/CVF Conference on Computer Vision and Pattern Recognition",
        timezone="America/Los_Angeles",
        deadline="2025-11-15 23:59",
        abstract_deadline="2025-11-08 23:59",
        sub=("CV", "ML"),
        hindex=440,
    )


@pytest.fixture
def policy() -> ReminderPolicy:
    return ReminderPolicy(recipient_id="U1", reminder_days=(3, 7, 30), notifications_enabled=True)
