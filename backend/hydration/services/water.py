"""
Water intake log and its analytics.

Entries are stored in UTC. Every aggregation buckets by the owner's local calendar (the
user's timezone), so "today" and the per-day totals match what the user sees on the clock.
"""

import calendar
import logging
from collections import defaultdict
from collections.abc import Iterable
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from hydration.config import settings
from hydration.core.exceptions import ValidationError
from hydration.models.user import User
from hydration.models.water_log import IntakeType, WaterLog
from hydration.services.reminder_schedule import resolve_zone

logger = logging.getLogger(__name__)

MAX_INTAKE_ML = 2000
MAX_NOTES_LENGTH = 200
RECENT_ENTRIES = 10
QUICK_LOG_NOTE = "Quick log from notification"


def user_zone(user: User) -> ZoneInfo:
    return resolve_zone(user.timezone, settings.reminder_timezone)


def as_utc(value: datetime) -> datetime:
    """Aware UTC datetime; naive values (sqlite) are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def validate_amount(amount_ml: int | None) -> int:
    if amount_ml is None or amount_ml <= 0:
        raise ValidationError("Amount must be greater than 0")
    if amount_ml > MAX_INTAKE_ML:
        raise ValidationError(f"Single intake cannot exceed {MAX_INTAKE_ML}ml")
    return amount_ml


def _clean_notes(notes: str | None) -> str | None:
    notes = (notes or "").strip()
    if len(notes) > MAX_NOTES_LENGTH:
        raise ValidationError(f"Notes cannot exceed {MAX_NOTES_LENGTH} characters")
    return notes or None


def local_day_bounds(day: date, zone: ZoneInfo) -> tuple[datetime, datetime]:
    """[start, end) of a local calendar day, in UTC."""
    start = datetime.combine(day, time.min, tzinfo=zone)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=zone)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def local_today(zone: ZoneInfo, now: datetime | None = None) -> date:
    return as_utc(now or datetime.now(timezone.utc)).astimezone(zone).date()


async def log_intake(
    session: AsyncSession,
    user_id: int,
    amount_ml: int | None,
    intake_type: IntakeType = IntakeType.custom,
    notes: str | None = None,
    timestamp: datetime | None = None,
) -> WaterLog:
    entry = WaterLog(
        user_id=user_id,
        amount_ml=validate_amount(amount_ml),
        type=intake_type.value,
        notes=_clean_notes(notes),
        timestamp=as_utc(timestamp) if timestamp else datetime.now(timezone.utc),
    )
    session.add(entry)
    await session.flush()
    logger.info("Water intake logged: user_id=%s amount_ml=%s type=%s", user_id, entry.amount_ml, entry.type)
    return entry


async def quick_log(
    session: AsyncSession,
    user: User,
    custom_amount_ml: int | None = None,
    notes: str | None = None,
) -> tuple[WaterLog, bool]:
    """Log the user's default amount (or custom_amount_ml). Returns (entry, used_default)."""
    used_default = custom_amount_ml is None
    entry = await log_intake(
        session,
        user.id,
        user.default_water_amount_ml if used_default else custom_amount_ml,
        IntakeType.notification if used_default else IntakeType.custom,
        notes if notes is not None else QUICK_LOG_NOTE,
    )
    return entry, used_default


async def list_logs(
    session: AsyncSession,
    user_id: int,
    *,
    limit: int = 50,
    skip: int = 0,
    start: datetime | None = None,
    end: datetime | None = None,
) -> tuple[list[WaterLog], int]:
    """Newest first. Returns (page, total matching)."""
    conditions = [WaterLog.user_id == user_id]
    if start is not None:
        conditions.append(WaterLog.timestamp >= start)
    if end is not None:
        conditions.append(WaterLog.timestamp < end)
    total = (await session.execute(select(func.count(WaterLog.id)).where(*conditions))).scalar_one()
    r = await session.execute(
        select(WaterLog)
        .where(*conditions)
        .order_by(WaterLog.timestamp.desc(), WaterLog.id.desc())
        .offset(skip)
        .limit(limit)
    )
    return list(r.scalars().all()), total


async def logs_between(session: AsyncSession, user_id: int, start: datetime, end: datetime) -> list[WaterLog]:
    r = await session.execute(
        select(WaterLog)
        .where(WaterLog.user_id == user_id, WaterLog.timestamp >= start, WaterLog.timestamp < end)
        .order_by(WaterLog.timestamp.desc(), WaterLog.id.desc())
    )
    return list(r.scalars().all())


async def delete_log(session: AsyncSession, user_id: int, log_id: int) -> bool:
    r = await session.execute(delete(WaterLog).where(WaterLog.id == log_id, WaterLog.user_id == user_id))
    return (r.rowcount or 0) > 0


def _local(entry, zone: ZoneInfo) -> datetime:
    return as_utc(entry.timestamp).astimezone(zone)


def daily_totals(entries: Iterable, zone: ZoneInfo) -> list[dict]:
    """Per local day with at least one entry, newest day first."""
    buckets: dict[date, list[int]] = defaultdict(lambda: [0, 0])
    for entry in entries:
        bucket = buckets[_local(entry, zone).date()]
        bucket[0] += entry.amount_ml
        bucket[1] += 1
    return [
        {"date": day.isoformat(), "total_amount": total, "entry_count": count}
        for day, (total, count) in sorted(buckets.items(), reverse=True)
    ]


def weekly_totals(entries: Iterable, zone: ZoneInfo) -> list[dict]:
    """Per ISO week (Monday start), newest first."""
    buckets: dict[tuple[int, int], list] = {}
    for entry in entries:
        local_day = _local(entry, zone).date()
        year, week, _ = local_day.isocalendar()
        bucket = buckets.setdefault((year, week), [0, 0, local_day - timedelta(days=local_day.weekday())])
        bucket[0] += entry.amount_ml
        bucket[1] += 1
    return [
        {
            "year": year,
            "week": week,
            "start_of_week": start.isoformat(),
            "total_amount": total,
            "entry_count": count,
        }
        for (year, week), (total, count, start) in sorted(buckets.items(), reverse=True)
    ]


def monthly_totals(entries: Iterable, zone: ZoneInfo) -> list[dict]:
    buckets: dict[tuple[int, int], list[int]] = defaultdict(lambda: [0, 0])
    for entry in entries:
        local = _local(entry, zone)
        bucket = buckets[(local.year, local.month)]
        bucket[0] += entry.amount_ml
        bucket[1] += 1
    return [
        {
            "year": year,
            "month": month,
            "month_name": calendar.month_name[month],
            "total_amount": total,
            "entry_count": count,
        }
        for (year, month), (total, count) in sorted(buckets.items(), reverse=True)
    ]


def hourly_distribution(entries: Iterable, zone: ZoneInfo) -> list[dict]:
    """All 24 local hours, zero-filled."""
    totals = [0] * 24
    counts = [0] * 24
    for entry in entries:
        hour = _local(entry, zone).hour
        totals[hour] += entry.amount_ml
        counts[hour] += 1
    return [
        {"hour": h, "hour_label": f"{h:02d}:00", "total_amount": totals[h], "entry_count": counts[h]}
        for h in range(24)
    ]


def average(total: int, periods: int) -> int:
    return round(total / periods) if periods else 0


def shift_months(day: date, months: int) -> date:
    """First day of the month `months` before day's month."""
    index = day.year * 12 + (day.month - 1) - months
    return date(index // 12, index % 12 + 1, 1)


def today_summary(entries: list, goal_ml: int, day: date) -> dict:
    """entries: today's entries, newest first."""
    total = sum(e.amount_ml for e in entries)
    return {
        "date": day.isoformat(),
        "total_amount": total,
        "entry_count": len(entries),
        "goal_ml": goal_ml,
        "remaining_ml": max(goal_ml - total, 0),
        "progress_percent": min(round(total / goal_ml * 100), 100) if goal_ml else 0,
        "recent_entries": entries[:RECENT_ENTRIES],
    }
