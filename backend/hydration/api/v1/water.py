"""Water intake endpoints: log, quick log, history, delete, and analytics for charts."""

from datetime import date, datetime, timedelta
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from hydration.api.deps import get_current_user
from hydration.core.exceptions import ValidationError
from hydration.db.session import get_db
from hydration.models.user import User
from hydration.models.water_log import IntakeType, WaterLog
from hydration.services.water import (
    as_utc,
    average,
    daily_totals,
    delete_log,
    hourly_distribution,
    list_logs,
    local_day_bounds,
    local_today,
    log_intake,
    logs_between,
    monthly_totals,
    quick_log,
    shift_months,
    today_summary,
    user_zone,
    weekly_totals,
)

router = APIRouter(prefix="/water", tags=["water"])

DEFAULT_DAYS = 30
MAX_DAYS = 365

Session = Annotated[AsyncSession, Depends(get_db)]
CurrentUser = Annotated[User, Depends(get_current_user)]


class LogBody(BaseModel):
    amount_ml: int | None = None
    type: IntakeType = IntakeType.custom
    notes: str | None = None
    timestamp: datetime | None = None


class QuickLogBody(BaseModel):
    custom_amount_ml: int | None = None
    notes: str | None = None


class WaterLogOut(BaseModel):
    id: int
    amount_ml: int
    type: str
    notes: str | None
    timestamp: datetime


def _log_out(entry: WaterLog) -> WaterLogOut:
    return WaterLogOut(
        id=entry.id,
        amount_ml=entry.amount_ml,
        type=entry.type,
        notes=entry.notes,
        timestamp=as_utc(entry.timestamp),
    )


def _parse_date_range(
    from_date: date | None,
    to_date: date | None,
    today: date,
    days: int = DEFAULT_DAYS,
) -> tuple[date, date]:
    to_d = to_date or today
    from_d = from_date or (to_d - timedelta(days=days - 1))
    if from_d > to_d:
        raise HTTPException(status_code=400, detail="Start date must not be after end date")
    if (to_d - from_d).days > MAX_DAYS:
        from_d = to_d - timedelta(days=MAX_DAYS)
    return from_d, to_d


@router.post(
    "/log",
    status_code=201,
    summary="Log a water intake",
    responses={400: {"description": "Invalid amount or notes"}},
)
async def log_water(session: Session, user: CurrentUser, body: LogBody) -> dict[str, Any]:
    try:
        entry = await log_intake(session, user.id, body.amount_ml, body.type, body.notes, body.timestamp)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.message)
    return {"message": "Water intake logged successfully", "water_log": _log_out(entry)}


@router.post(
    "/log/quick",
    status_code=201,
    summary="Log the default amount (used by the reminder notification action)",
    responses={400: {"description": "Invalid amount"}},
)
async def log_water_quick(session: Session, user: CurrentUser, body: QuickLogBody | None = None) -> dict[str, Any]:
    body = body or QuickLogBody()
    try:
        entry, used_default = await quick_log(session, user, body.custom_amount_ml, body.notes)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.message)
    return {"message": "Water intake logged quickly", "water_log": _log_out(entry), "was_default": used_default}


@router.get("/logs", summary="Intake history, newest first")
async def get_logs(
    session: Session,
    user: CurrentUser,
    limit: int = Query(default=50, ge=1, le=200),
    skip: int = Query(default=0, ge=0),
    start_date: date | None = None,
    end_date: date | None = None,
) -> dict[str, Any]:
    zone = user_zone(user)
    start = local_day_bounds(start_date, zone)[0] if start_date else None
    end = local_day_bounds(end_date, zone)[1] if end_date else None
    entries, total = await list_logs(session, user.id, limit=limit, skip=skip, start=start, end=end)
    return {
        "water_logs": [_log_out(e) for e in entries],
        "pagination": {"total": total, "limit": limit, "skip": skip, "has_more": skip + limit < total},
    }


@router.delete(
    "/logs/{log_id}",
    summary="Delete one of the current user's entries",
    responses={404: {"description": "Water log entry not found"}},
)
async def remove_log(
    session: Session,
    user: CurrentUser,
    log_id: int = Path(description="Water log id"),
) -> dict[str, str]:
    if not await delete_log(session, user.id, log_id):
        raise HTTPException(status_code=404, detail="Water log entry not found")
    return {"message": "Water log entry deleted successfully"}


@router.get("/analytics/daily", summary="Per-day totals for the last N days")
async def get_daily_analytics(
    session: Session,
    user: CurrentUser,
    days: int = Query(default=DEFAULT_DAYS, ge=1, le=MAX_DAYS),
) -> dict[str, Any]:
    zone = user_zone(user)
    today = local_today(zone)
    start, _ = local_day_bounds(today - timedelta(days=days - 1), zone)
    _, end = local_day_bounds(today, zone)
    daily = daily_totals(await logs_between(session, user.id, start, end), zone)
    total = sum(d["total_amount"] for d in daily)
    return {
        "daily_data": daily,
        "summary": {
            "total_days": len(daily),
            "total_amount": total,
            "average_daily": average(total, len(daily)),
            "goal_ml": user.daily_goal_ml,
            "days_goal_met": sum(1 for d in daily if d["total_amount"] >= user.daily_goal_ml),
            "period": f"Last {days} days",
        },
    }


@router.get("/analytics/weekly", summary="Per-week totals for the last N weeks")
async def get_weekly_analytics(
    session: Session,
    user: CurrentUser,
    weeks: int = Query(default=4, ge=1, le=52),
) -> dict[str, Any]:
    zone = user_zone(user)
    today = local_today(zone)
    monday = today - timedelta(days=today.weekday())
    start, _ = local_day_bounds(monday - timedelta(weeks=weeks - 1), zone)
    _, end = local_day_bounds(today, zone)
    weekly = weekly_totals(await logs_between(session, user.id, start, end), zone)
    total = sum(w["total_amount"] for w in weekly)
    return {
        "weekly_data": weekly,
        "summary": {
            "total_weeks": len(weekly),
            "total_amount": total,
            "average_weekly": average(total, len(weekly)),
            "period": f"Last {weeks} weeks",
        },
    }


@router.get("/analytics/monthly", summary="Per-month totals for the last N months")
async def get_monthly_analytics(
    session: Session,
    user: CurrentUser,
    months: int = Query(default=6, ge=1, le=24),
) -> dict[str, Any]:
    zone = user_zone(user)
    today = local_today(zone)
    start, _ = local_day_bounds(shift_months(today, months - 1), zone)
    _, end = local_day_bounds(today, zone)
    monthly = monthly_totals(await logs_between(session, user.id, start, end), zone)
    total = sum(m["total_amount"] for m in monthly)
    return {
        "monthly_data": monthly,
        "summary": {
            "total_months": len(monthly),
            "total_amount": total,
            "average_monthly": average(total, len(monthly)),
            "period": f"Last {months} months",
        },
    }


@router.get(
    "/analytics/hourly",
    summary="Intake by local hour of day",
    responses={400: {"description": "Start date after end date"}},
)
async def get_hourly_analytics(
    session: Session,
    user: CurrentUser,
    start_date: date | None = None,
    end_date: date | None = None,
) -> dict[str, Any]:
    zone = user_zone(user)
    from_d, to_d = _parse_date_range(start_date, end_date, local_today(zone))
    start, _ = local_day_bounds(from_d, zone)
    _, end = local_day_bounds(to_d, zone)
    hourly = hourly_distribution(await logs_between(session, user.id, start, end), zone)
    peak = max(hourly, key=lambda h: h["total_amount"])
    return {
        "hourly_data": hourly,
        "summary": {
            "peak_hour": peak["hour_label"] if peak["total_amount"] else None,
            "peak_amount": peak["total_amount"],
            "period": f"{from_d.isoformat()} to {to_d.isoformat()}",
        },
    }


@router.get("/analytics/today", summary="Today's total against the daily goal")
async def get_today_analytics(session: Session, user: CurrentUser) -> dict[str, Any]:
    zone = user_zone(user)
    today = local_today(zone)
    start, end = local_day_bounds(today, zone)
    summary = today_summary(await logs_between(session, user.id, start, end), user.daily_goal_ml, today)
    summary["recent_entries"] = [_log_out(e) for e in summary["recent_entries"]]
    summary["timezone"] = str(zone)
    return summary

