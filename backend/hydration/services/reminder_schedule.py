"""
Due-check evaluator: decides whether a user should get a reminder at a given local hour/minute.

Pure functions only; the scheduler resolves the clock and feeds hour/minute in.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from hydration.schemas.reminder import DEFAULT_FREQUENCY, Frequency, TickMode

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReminderPreference:
    notifications_enabled: bool = True
    window_start_hour: int = 5
    window_end_hour: int = 0
    frequency: Frequency = DEFAULT_FREQUENCY
    timezone: str | None = None

    @classmethod
    def from_user(cls, user) -> "ReminderPreference":
        """Snapshot a User row; missing values fall back to enabled / hourly."""
        enabled = user.notifications_enabled
        return cls(
            notifications_enabled=True if enabled is None else bool(enabled),
            window_start_hour=_clamp_hour(user.notification_start_hour, 5),
            window_end_hour=_clamp_hour(user.notification_end_hour, 0),
            frequency=resolve_frequency(user.notification_frequency),
            timezone=user.timezone,
        )


def _clamp_hour(value: int | None, default: int) -> int:
    if value is None or not 0 <= int(value) <= 23:
        return default
    return int(value)


def resolve_frequency(value: str | Frequency | None) -> Frequency:
    """Map a stored value onto the enum; anything unknown is hourly."""
    if isinstance(value, Frequency):
        return value
    try:
        return Frequency(value)
    except ValueError:
        if value is not None:
            logger.warning("Unknown reminder frequency %r, using %s", value, DEFAULT_FREQUENCY.value)
        return DEFAULT_FREQUENCY


def within_window(start_hour: int, end_hour: int, hour: int) -> bool:
    """Inclusive hour window. end_hour == 0 means the window runs through 23:59."""
    if end_hour == 0:
        return hour >= start_hour
    if start_hour <= end_hour:
        return start_hour <= hour <= end_hour
    # Wraps past midnight, e.g. 22 -> 2
    return hour >= start_hour or hour <= end_hour


def _due_in_test_mode(frequency: Frequency, minute: int) -> bool:
    if frequency is Frequency.EVERY_MINUTE_TEST:
        return True
    if frequency is Frequency.EVERY_30_MIN:
        return minute % 30 == 0
    if frequency is Frequency.EVERY_2_HOURS:
        # Literal minute-based rule: with minute in 0..59 this only fires at minute 0,
        # so the accelerated 2-hour cadence behaves like the hourly one.
        return minute % 120 == 0
    return minute % 60 == 0


def _due_in_production(frequency: Frequency, hour: int, minute: int) -> bool:
    if frequency is Frequency.EVERY_30_MIN:
        return minute in (0, 30)
    if frequency is Frequency.EVERY_2_HOURS:
        return hour % 2 == 0 and minute == 0
    # Hourly; every-minute is a test-only cadence and falls back to hourly here.
    return minute == 0


def is_due(pref: ReminderPreference, hour: int, minute: int, mode: TickMode = TickMode.PRODUCTION) -> bool:
    """True if a reminder should go out for this preference at local hour:minute."""
    if not pref.notifications_enabled:
        return False
    if not within_window(pref.window_start_hour, pref.window_end_hour, hour):
        return False
    frequency = resolve_frequency(pref.frequency)
    if mode is TickMode.TEST:
        return _due_in_test_mode(frequency, minute)
    return _due_in_production(frequency, hour, minute)


def resolve_zone(name: str | None, fallback: str) -> ZoneInfo:
    """ZoneInfo for name; unknown or empty names use the fallback zone."""
    if name:
        try:
            return ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("Unknown timezone %r, falling back to %s", name, fallback)
    return ZoneInfo(fallback)


def local_time_components(now: datetime, zone: ZoneInfo) -> tuple[int, int]:
    """(hour, minute) of an aware or UTC-naive datetime in zone."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    local = now.astimezone(zone)
    return local.hour, local.minute
