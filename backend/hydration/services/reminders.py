"""
Reminder cycle: the due-check -> build -> dispatch -> bookkeeping pipeline run by every tick.

Both the minute ticker and manual triggers go through ReminderCycle.run so that test and
production paths stay identical.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone

from hydration.config import settings
from hydration.core import metrics
from hydration.core.exceptions import ConfigurationError
from hydration.models.push_subscription import PushSubscription
from hydration.schemas.reminder import TickMode
from hydration.services.delivery import dispatch, summarize
from hydration.services.notification_builder import ReminderIntent, build_reminder, build_test_reminder
from hydration.services.reminder_schedule import (
    ReminderPreference,
    is_due,
    local_time_components,
    resolve_zone,
)
from hydration.services.subscriptions import (
    apply_outcomes,
    list_active_subscriptions_with_owner_prefs,
    list_user_subscriptions,
)
from hydration.services.web_push import WebPushTransport

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CycleSummary:
    mode: TickMode
    hour: int
    minute: int
    checked: int = 0
    due: int = 0
    sent: int = 0
    failed: int = 0
    error: str | None = None

    @property
    def success_rate(self) -> int:
        total = self.sent + self.failed
        return round(self.sent / total * 100) if total else 0


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ReminderCycle:
    """One evaluation of every deliverable subscription against its owner's preferences."""

    def __init__(
        self,
        session_factory,
        transport: WebPushTransport,
        *,
        reference_timezone: str | None = None,
        per_user_timezone: bool | None = None,
        ttl_seconds: int | None = None,
        urgency: str | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._session_factory = session_factory
        self._transport = transport
        self._reference_timezone = reference_timezone or settings.reminder_timezone
        self._per_user_timezone = settings.per_user_timezone if per_user_timezone is None else per_user_timezone
        self._ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.push_ttl_seconds
        self._urgency = urgency or settings.push_urgency
        self._clock = clock
        self._config_error_logged = False

    @property
    def reference_timezone(self) -> str:
        return self._reference_timezone

    def _is_subscription_due(self, sub: PushSubscription, now: datetime, hour: int, minute: int, mode: TickMode) -> bool:
        if sub.user is None:
            logger.warning("Subscription without owner found: subscription_id=%s", sub.id)
            return False
        pref = ReminderPreference.from_user(sub.user)
        if self._per_user_timezone:
            hour, minute = local_time_components(now, resolve_zone(pref.timezone, self._reference_timezone))
        due = is_due(pref, hour, minute, mode)
        logger.debug(
            "user_id=%s frequency=%s window=%s-%s time=%s:%02d due=%s",
            sub.user_id, pref.frequency.value, pref.window_start_hour, pref.window_end_hour, hour, minute, due,
        )
        return due

    async def run(self, mode: TickMode = TickMode.PRODUCTION, now: datetime | None = None) -> CycleSummary:
        now = now or self._clock()
        hour, minute = local_time_components(now, resolve_zone(self._reference_timezone, "UTC"))
        logger.info(
            "[%s] Starting hydration reminder for %s:%02d %s",
            mode.value.upper(), hour, minute, self._reference_timezone,
        )

        async with self._session_factory() as session:
            subscriptions = await list_active_subscriptions_with_owner_prefs(session)
            if not subscriptions:
                logger.info("No active subscriptions found")
                metrics.record_tick(mode.value, "idle")
                return CycleSummary(mode=mode, hour=hour, minute=minute)

            due = [s for s in subscriptions if self._is_subscription_due(s, now, hour, minute, mode)]
            if not due:
                logger.info("No subscriptions due at %s:%02d (%s checked)", hour, minute, len(subscriptions))
                metrics.record_tick(mode.value, "idle")
                return CycleSummary(mode=mode, hour=hour, minute=minute, checked=len(subscriptions))

            # Release the read transaction; no connection is held across the network sends
            await session.commit()

            intent = ReminderIntent.TEST if mode is TickMode.TEST else ReminderIntent.REAL
            payload = build_reminder(intent, extra_data={"hour": hour, "minute": minute})
            logger.info("Sending hydration reminders to %s subscriptions...", len(due))
            try:
                results = await dispatch(
                    due,
                    payload,
                    self._transport,
                    ttl_seconds=self._ttl_seconds,
                    urgency=self._urgency,
                )
            except ConfigurationError as e:
                # Server misconfiguration is not the subscriptions' fault: leave their counters alone
                if not self._config_error_logged:
                    logger.error("Push transport not configured, reminders skipped: %s", e.message)
                    self._config_error_logged = True
                metrics.record_tick(mode.value, "misconfigured")
                return CycleSummary(
                    mode=mode, hour=hour, minute=minute,
                    checked=len(subscriptions), due=len(due), error=e.message,
                )

            sent, failed = await apply_outcomes(session, results)
            await session.commit()

        summary = CycleSummary(
            mode=mode, hour=hour, minute=minute,
            checked=len(subscriptions), due=len(due), sent=sent, failed=failed,
        )
        metrics.record_deliveries(mode.value, summarize(results))
        metrics.record_tick(mode.value, "sent")
        logger.info("Hydration reminders sent: %s successful, %s failed", sent, failed)
        logger.info(
            "%02d:%02d %s summary: %s/%s (%s%%) successful",
            hour, minute, self._reference_timezone, sent, sent + failed, summary.success_rate,
        )
        return summary


async def send_test_notification_to_user(
    session,
    user_id: int,
    transport: WebPushTransport,
) -> list[dict]:
    """Send the test reminder to one user's subscriptions and record outcomes. Caller commits."""
    subscriptions = await list_user_subscriptions(session, user_id)
    if not subscriptions:
        return []
    results = await dispatch(
        subscriptions,
        build_test_reminder(),
        transport,
        ttl_seconds=settings.push_ttl_seconds,
        urgency=settings.push_urgency,
    )
    await apply_outcomes(session, results)
    logger.info(
        "Test notification sent to user_id=%s: %s/%s successful",
        user_id, sum(1 for r in results if r.success), len(results),
    )
    return [
        {"success": r.success, "endpoint": r.endpoint, "error": r.error}
        for r in results
    ]
