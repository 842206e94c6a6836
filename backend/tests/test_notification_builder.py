"""Tests for reminder payload construction."""

import json

from hydration.services.notification_builder import (
    REMINDER_TAG,
    TEST_REMINDER_TAG,
    ReminderIntent,
    build_reminder,
    build_test_reminder,
)


def test_real_reminder_shape():
    payload = build_reminder(ReminderIntent.REAL)
    data = payload.to_dict()
    assert data["title"] == "Drink Water! 💧"
    assert data["body"] == "Stay Hydrated. Time to drink some water!"
    assert data["tag"] == REMINDER_TAG
    assert data["requireInteraction"] is False
    assert data["data"]["isTest"] is False
    assert data["data"]["url"] == "/"
    assert data["data"]["action"] == "hydration-reminder"
    assert [a["action"] for a in data["actions"]] == ["log-water", "snooze"]
    assert payload.is_test is False


def test_test_reminder_is_flagged_and_sticky():
    payload = build_test_reminder()
    assert payload.tag == TEST_REMINDER_TAG
    assert payload.require_interaction is True
    assert payload.data.is_test is True
    assert payload.is_test is True
    assert payload.title.startswith("Test Water Reminder")


def test_overrides_and_extra_data():
    payload = build_reminder(
        ReminderIntent.REAL,
        title="Custom",
        require_interaction=True,
        extra_data={"hour": 9, "minute": 0},
    )
    assert payload.title == "Custom"
    assert payload.require_interaction is True
    body = json.loads(payload.to_json())
    assert body["data"]["hour"] == 9
    assert body["data"]["minute"] == 0
    assert body["requireInteraction"] is True


def test_each_build_is_independent():
    first = build_reminder()
    second = build_reminder(extra_data={"hour": 1})
    assert first.actions is not second.actions
    assert "hour" not in first.to_dict()["data"]
