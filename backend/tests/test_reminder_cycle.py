"""Tests for one reminder cycle against the sqlite store with a fake transport."""

import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import delete

from conftest import create_subscription, create_user, get_subscription, make_transport
from hydration.core.exceptions import TransientDeliveryError
from hydration.db.session import async_session_maker
from hydration.models.push_subscription import PushSubscription
from hydration.schemas.reminder import TickMode
from hydration.services.reminders import ReminderCycle, send_test_notification_to_user
from hydration.services.web_push import SendResult, WebPushTransport

TEN_AM = datetime(2025, 3, 10, 10, 0, tzinfo=timezone.utc)


def make_cycle(transport, **kwargs) -> ReminderCycle:
    kwargs.setdefault("reference_timezone", "UTC")
    kwargs.setdefault("per_user_timezone", False)
    return ReminderCycle(async_session_maker, transport, **kwargs)


@pytest.mark.asyncio
async def test_no_subscriptions_is_idle(clean_db):
    transport = make_transport()
    summary = await make_cycle(transport).run(TickMode.PRODUCTION, now=TEN_AM)
    assert (summary.checked, summary.due, summary.sent) == (0, 0, 0)
    transport.send.assert_not_awaited()


@pytest.mark.asyncio
async def test_hourly_user_gets_reminder_on_the_hour(clean_db):
    user = await create_user()
    sub = await create_subscription(user.id, "https://push.example/1", failed_attempts=2)
    transport = make_transport()

    summary = await make_cycle(transport).run(TickMode.PRODUCTION, now=TEN_AM)

    assert (summary.hour, summary.minute) == (10, 0)
    assert (summary.checked, summary.due, summary.sent, summary.failed) == (1, 1, 1, 0)
    assert summary.success_rate == 100
    endpoint, keys, payload_json = transport.send.await_args.args
    assert endpoint == "https://push.example/1"
    assert keys == {"p256dh": "p256dh-key", "auth": "auth-key"}
    payload = json.loads(payload_json)
    assert payload["tag"] == "hydration-reminder"
    assert payload["data"]["isTest"] is False
    assert payload["data"]["hour"] == 10
    stored = await get_subscription(sub.id)
    assert stored.failed_attempts == 0
    assert stored.last_notification_sent is not None


@pytest.mark.asyncio
async def test_off_minute_sends_nothing(clean_db):
    user = await create_user()
    await create_subscription(user.id, "https://push.example/1")
    transport = make_transport()
    summary = await make_cycle(transport).run(TickMode.PRODUCTION, now=TEN_AM.replace(minute=15))
    assert (summary.checked, summary.due) == (1, 0)
    transport.send.assert_not_awaited()


@pytest.mark.asyncio
async def test_disabled_and_out_of_window_users_are_skipped(clean_db):
    off = await create_user("off@test.com", notifications_enabled=False)
    night = await create_user("night@test.com", notification_start_hour=20, notification_end_hour=23)
    on = await create_user("on@test.com")
    await create_subscription(off.id, "https://push.example/off")
    await create_subscription(night.id, "https://push.example/night")
    await create_subscription(on.id, "https://push.example/on")
    transport = make_transport()

    summary = await make_cycle(transport).run(TickMode.PRODUCTION, now=TEN_AM)

    assert (summary.checked, summary.due, summary.sent) == (3, 1, 1)
    assert transport.send.await_args.args[0] == "https://push.example/on"


@pytest.mark.asyncio
async def test_test_mode_sends_test_payload_every_minute(clean_db):
    user = await create_user(notification_frequency="every_minute_test")
    await create_subscription(user.id, "https://push.example/1")
    transport = make_transport()

    summary = await make_cycle(transport).run(TickMode.TEST, now=TEN_AM.replace(minute=17))

    assert summary.sent == 1
    payload = json.loads(transport.send.await_args.args[2])
    assert payload["tag"] == "test-hydration-reminder"
    assert payload["data"]["isTest"] is True
    assert payload["requireInteraction"] is True


@pytest.mark.asyncio
async def test_failures_are_counted(clean_db):
    user = await create_user()
    sub = await create_subscription(user.id, "https://push.example/1", failed_attempts=4)
    transport = make_transport(AsyncMock(side_effect=TransientDeliveryError("Service Unavailable", status_code=503)))

    summary = await make_cycle(transport).run(TickMode.PRODUCTION, now=TEN_AM)

    assert (summary.sent, summary.failed) == (0, 1)
    stored = await get_subscription(sub.id)
    assert stored.failed_attempts == 5
    assert stored.is_active is False
    assert stored.last_error == "Service Unavailable"


@pytest.mark.asyncio
async def test_subscription_deleted_mid_send_keeps_other_outcomes(clean_db):
    user = await create_user()
    kept = await create_subscription(user.id, "https://push.example/kept", failed_attempts=3)
    gone = await create_subscription(user.id, "https://push.example/gone", failed_attempts=1)

    async def send(endpoint, keys, payload_json, **kwargs):
        if endpoint.endswith("/gone"):
            async with async_session_maker() as other:
                await other.execute(delete(PushSubscription).where(PushSubscription.id == gone.id))
                await other.commit()
            raise TransientDeliveryError("Service Unavailable", status_code=503)
        return SendResult(status_code=201)

    summary = await make_cycle(make_transport(AsyncMock(side_effect=send))).run(TickMode.PRODUCTION, now=TEN_AM)

    assert (summary.due, summary.sent, summary.failed) == (2, 1, 0)
    stored = await get_subscription(kept.id)
    assert stored.failed_attempts == 0
    assert stored.last_notification_sent is not None
    assert await get_subscription(gone.id) is None


@pytest.mark.asyncio
async def test_missing_vapid_keys_do_not_touch_counters(clean_db):
    user = await create_user()
    sub = await create_subscription(user.id, "https://push.example/1", failed_attempts=1)
    transport = WebPushTransport("", "", "mailto:a@b.com")

    summary = await make_cycle(transport).run(TickMode.PRODUCTION, now=TEN_AM)

    assert summary.error is not None
    assert (summary.due, summary.sent, summary.failed) == (1, 0, 0)
    stored = await get_subscription(sub.id)
    assert stored.failed_attempts == 1
    assert stored.is_active is True


@pytest.mark.asyncio
async def test_reference_zone_drives_the_window(clean_db):
    # 04:30 UTC is 10:00 in Asia/Kolkata
    user = await create_user(notification_start_hour=9, notification_end_hour=11)
    await create_subscription(user.id, "https://push.example/1")
    transport = make_transport()

    summary = await make_cycle(transport, reference_timezone="Asia/Kolkata").run(
        TickMode.PRODUCTION, now=datetime(2025, 3, 10, 4, 30, tzinfo=timezone.utc)
    )
    assert (summary.hour, summary.minute, summary.sent) == (10, 0, 1)


@pytest.mark.asyncio
async def test_per_user_timezone(clean_db):
    # 09:30 UTC is 15:00 in Asia/Kolkata and 09:30 in the UTC reference zone
    user = await create_user(notification_start_hour=15, notification_end_hour=16, timezone="Asia/Kolkata")
    await create_subscription(user.id, "https://push.example/1")
    now = datetime(2025, 3, 10, 9, 30, tzinfo=timezone.utc)

    reference_only = make_transport()
    await make_cycle(reference_only).run(TickMode.PRODUCTION, now=now)
    reference_only.send.assert_not_awaited()

    per_user = make_transport()
    summary = await make_cycle(per_user, per_user_timezone=True).run(TickMode.PRODUCTION, now=now)
    assert summary.sent == 1


@pytest.mark.asyncio
async def test_send_test_notification_to_user(clean_db):
    user = await create_user()
    other = await create_user("other@test.com")
    await create_subscription(user.id, "https://push.example/mine")
    await create_subscription(other.id, "https://push.example/theirs")
    transport = make_transport()

    async with async_session_maker() as session:
        results = await send_test_notification_to_user(session, user.id, transport)
        await session.commit()

    assert results == [{"success": True, "endpoint": "https://push.example/mine", "error": None}]
    assert json.loads(transport.send.await_args.args[2])["data"]["isTest"] is True


@pytest.mark.asyncio
async def test_send_test_notification_without_subscriptions(clean_db):
    user = await create_user()
    async with async_session_maker() as session:
        assert await send_test_notification_to_user(session, user.id, make_transport()) == []
