"""Builds the fixed-shape hydration reminder payloads (real and test)."""

from __future__ import annotations

import time
from enum import Enum
from typing import Any

from hydration.schemas.notification import NotificationAction, NotificationData, NotificationPayload

REMINDER_TAG = "hydration-reminder"
TEST_REMINDER_TAG = "test-hydration-reminder"
REMINDER_ACTION = "hydration-reminder"

REMINDER_TITLE = "Drink Water! 💧"
REMINDER_BODY = "Stay Hydrated. Time to drink some water!"
TEST_REMINDER_TITLE = "Test Water Reminder 🧪💧"
TEST_REMINDER_BODY = "Test notification - Stay Hydrated!"


class ReminderIntent(str, Enum):
    REAL = "real"
    TEST = "test"


def _default_actions() -> list[NotificationAction]:
    # Same buttons for real and test reminders
    return [
        NotificationAction(action="log-water", title="✅ Drink Water", icon="/icon-check.png"),
        NotificationAction(action="snooze", title="⏰ Remind Later", icon="/icon-snooze.png"),
    ]


def build_reminder(
    intent: ReminderIntent = ReminderIntent.REAL,
    *,
    title: str | None = None,
    body: str | None = None,
    tag: str | None = None,
    require_interaction: bool | None = None,
    silent: bool = False,
    url: str = "/",
    extra_data: dict[str, Any] | None = None,
) -> NotificationPayload:
    """Return a new payload; never shares mutable state between calls."""
    is_test = intent is ReminderIntent.TEST
    data = NotificationData(
        url=url,
        action=REMINDER_ACTION,
        timestamp=int(time.time() * 1000),
        is_test=is_test,
        **(extra_data or {}),
    )
    return NotificationPayload(
        title=title or (TEST_REMINDER_TITLE if is_test else REMINDER_TITLE),
        body=body or (TEST_REMINDER_BODY if is_test else REMINDER_BODY),
        tag=tag or (TEST_REMINDER_TAG if is_test else REMINDER_TAG),
        # Test reminders stay on screen until clicked
        require_interaction=is_test if require_interaction is None else require_interaction,
        silent=silent,
        data=data,
        actions=_default_actions(),
    )


def build_test_reminder(**overrides: Any) -> NotificationPayload:
    return build_reminder(ReminderIntent.TEST, **overrides)
