"""Operational scheduler controls: status, test/production mode, manual trigger (development only)."""

from dataclasses import asdict
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException

from hydration.api.deps import get_current_user, get_reminder_engine
from hydration.core.exceptions import ProductionLockedError, SchedulerFault
from hydration.models.user import User
from hydration.schemas.reminder import TickMode
from hydration.services.engine import ReminderEngine

router = APIRouter(prefix="/scheduler", tags=["scheduler"])

Engine = Annotated[ReminderEngine, Depends(get_reminder_engine)]
CurrentUser = Annotated[User, Depends(get_current_user)]


@router.get("/status", summary="Reminder scheduler status")
async def scheduler_status(engine: Engine, user: CurrentUser) -> dict:
    return engine.controller.get_status()


@router.post(
    "/test-mode",
    summary="Switch the ticker to the accelerated test cadence",
    responses={403: {"description": "Disabled in production"}},
)
async def enter_test_mode(engine: Engine, user: CurrentUser) -> dict:
    try:
        return engine.controller.enter_test_mode()
    except ProductionLockedError as e:
        raise HTTPException(status_code=403, detail=e.message)


@router.post("/production-mode", summary="Switch the ticker to production cadence")
async def enter_production_mode(engine: Engine, user: CurrentUser) -> dict:
    return engine.controller.enter_production_mode()


@router.post(
    "/trigger",
    summary="Run one reminder cycle now",
    responses={
        403: {"description": "Disabled in production"},
        500: {"description": "Cycle failed"},
    },
)
async def trigger(engine: Engine, user: CurrentUser, mode: TickMode = TickMode.TEST) -> dict:
    try:
        summary = await engine.controller.trigger_once(mode)
    except ProductionLockedError as e:
        raise HTTPException(status_code=403, detail=e.message)
    except SchedulerFault as e:
        raise HTTPException(status_code=500, detail=e.message)
    if summary is None:
        return {"skipped": True}
    result = asdict(summary)
    result["mode"] = summary.mode.value
    return result
