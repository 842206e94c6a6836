"""User endpoints: reminder preferences read/update."""

import logging
from typing import Annotated
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from hydration.api.deps import get_current_user
from hydration.config import settings
from hydration.db.session import get_db
from hydration.models.user import User
from hydration.schemas.reminder import Frequency
from hydration.services.reminder_schedule import resolve_frequency

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/users", tags=["users"])


class PreferencesOut(BaseModel):
    notifications_enabled: bool
    notification_start_hour: int
    notification_end_hour: int
    notification_frequency: Frequency
    timezone: str
    daily_goal_ml: int
    default_water_amount_ml: int
    test_frequency_allowed: bool


class PreferencesUpdate(BaseModel):
    notifications_enabled: bool | None = None
    notification_start_hour: int | None = None
    notification_end_hour: int | None = None
    notification_frequency: str | None = None
    timezone: str | None = None
    daily_goal_ml: int | None = None
    default_water_amount_ml: int | None = None
    name: str | None = None


def can_use_test_frequency(user: User) -> bool:
    """Every-minute reminders are for allow-listed development accounts only."""
    if settings.production_locked:
        return False
    return (user.email or "").lower() in settings.test_frequency_allowlist


def preferences_out(user: User) -> PreferencesOut:
    return PreferencesOut(
        notifications_enabled=user.notifications_enabled,
        notification_start_hour=user.notification_start_hour,
        notification_end_hour=user.notification_end_hour,
        notification_frequency=resolve_frequency(user.notification_frequency),
        timezone=user.timezone,
        daily_goal_ml=user.daily_goal_ml,
        default_water_amount_ml=user.default_water_amount_ml,
        test_frequency_allowed=can_use_test_frequency(user),
    )


def _check_hour(value: int, label: str) -> int:
    if not 0 <= value <= 23:
        raise HTTPException(status_code=400, detail=f"Notification {label} hour must be between 0 and 23")
    return value


@router.get(
    "/me/preferences",
    response_model=PreferencesOut,
    summary="Get reminder preferences",
    responses={401: {"description": "Not authenticated"}},
)
async def get_preferences(user: Annotated[User, Depends(get_current_user)]) -> PreferencesOut:
    return preferences_out(user)


@router.patch(
    "/me/preferences",
    response_model=PreferencesOut,
    summary="Update reminder preferences",
    responses={
        400: {"description": "Invalid hour, frequency, timezone or amount"},
        401: {"description": "Not authenticated"},
        403: {"description": "Test frequency not allowed for this account"},
    },
)
async def update_preferences(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    body: PreferencesUpdate,
) -> PreferencesOut:
    apply_preferences(user, body)
    await session.flush()
    logger.info("Preferences updated for user_id=%s", user.id)
    return preferences_out(user)


def apply_preferences(user: User, body: PreferencesUpdate) -> None:
    """Validate and copy the fields set in body onto user. Raises HTTPException(400/403)."""
    if body.notification_start_hour is not None:
        user.notification_start_hour = _check_hour(body.notification_start_hour, "start")
    if body.notification_end_hour is not None:
        user.notification_end_hour = _check_hour(body.notification_end_hour, "end")

    if body.notification_frequency is not None:
        try:
            frequency = Frequency(body.notification_frequency)
        except ValueError:
            allowed = ", ".join(f.value for f in Frequency)
            raise HTTPException(status_code=400, detail=f"Notification frequency must be one of: {allowed}")
        if frequency is Frequency.EVERY_MINUTE_TEST and not can_use_test_frequency(user):
            raise HTTPException(status_code=403, detail="Every-minute reminders are limited to test accounts")
        user.notification_frequency = frequency.value

    if body.timezone is not None:
        try:
            ZoneInfo(body.timezone)
        except (ZoneInfoNotFoundError, ValueError):
            raise HTTPException(status_code=400, detail=f"Unknown timezone: {body.timezone}")
        user.timezone = body.timezone

    if body.daily_goal_ml is not None:
        if not 500 <= body.daily_goal_ml <= 5000:
            raise HTTPException(status_code=400, detail="Daily goal must be between 500ml and 5000ml")
        user.daily_goal_ml = body.daily_goal_ml
    if body.default_water_amount_ml is not None:
        if not 50 <= body.default_water_amount_ml <= 1000:
            raise HTTPException(status_code=400, detail="Default water amount must be between 50ml and 1000ml")
        user.default_water_amount_ml = body.default_water_amount_ml

    if body.notifications_enabled is not None:
        user.notifications_enabled = body.notifications_enabled
    if body.name is not None:
        user.name = body.name.strip()[:50] or None
