"""Reminder cadence enums shared by the preference store, the evaluator and the scheduler."""

from enum import Enum


class Frequency(str, Enum):
    EVERY_MINUTE_TEST = "every_minute_test"  # development accounts only
    EVERY_30_MIN = "every_30_min"
    EVERY_HOUR = "every_hour"
    EVERY_2_HOURS = "every_2_hours"


DEFAULT_FREQUENCY = Frequency.EVERY_HOUR


class TickMode(str, Enum):
    """How a tick interprets frequencies: real wall clock or accelerated test cadence."""

    PRODUCTION = "production"
    TEST = "test"
