"""
Reminder scheduler: a one-minute APScheduler tick plus the daily subscription cleanup.

States: stopped, production running, test running. Exactly one tick job exists while running;
switching modes tears the previous APScheduler instance down first. Ticks never overlap.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from hydration.config import settings
from hydration.core import metrics
from hydration.core.exceptions import SchedulerFault
from hydration.schemas.reminder import TickMode
from hydration.services.reminders import CycleSummary, ReminderCycle

logger = logging.getLogger(__name__)

TICK_JOB_ID = "hydration-reminder-tick"
CLEANUP_JOB_ID = "hydration-subscription-cleanup"

TickAuthorizer = Callable[[], Awaitable[bool]]


async def always_authorized() -> bool:
    """Single-instance deployments may always tick."""
    return True


class ReminderScheduler:
    def __init__(
        self,
        cycle: ReminderCycle,
        *,
        cleanup: Callable[[], Awaitable[Any]] | None = None,
        authorizer: TickAuthorizer = always_authorized,
        timezone: str | None = None,
        cleanup_hour: int | None = None,
        cleanup_minute: int | None = None,
    ):
        self._cycle = cycle
        self._cleanup = cleanup
        self._authorizer = authorizer
        self._timezone = timezone or settings.reminder_timezone
        self._cleanup_hour = settings.cleanup_hour if cleanup_hour is None else cleanup_hour
        self._cleanup_minute = settings.cleanup_minute if cleanup_minute is None else cleanup_minute
        self._scheduler: AsyncIOScheduler | None = None
        self._mode: TickMode | None = None
        self._lock = asyncio.Lock()
        self._inflight: set[asyncio.Task] = set()

    @property
    def mode(self) -> TickMode | None:
        """Current tick mode, None when stopped."""
        return self._mode

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    @property
    def timezone(self) -> str:
        return self._timezone

    def start(self) -> None:
        self._activate(TickMode.PRODUCTION)

    def start_test(self) -> None:
        self._activate(TickMode.TEST)

    def _activate(self, mode: TickMode) -> None:
        # Never two tickers: tear down whatever is running first
        self.stop()
        scheduler = AsyncIOScheduler(timezone=self._timezone)
        scheduler.add_job(
            self._tick,
            "cron",
            minute="*",
            second=0,
            id=TICK_JOB_ID,
            kwargs={"mode": mode},
            max_instances=1,
            coalesce=True,
            misfire_grace_time=30,
        )
        if self._cleanup is not None:
            scheduler.add_job(
                self._run_cleanup,
                "cron",
                hour=self._cleanup_hour,
                minute=self._cleanup_minute,
                id=CLEANUP_JOB_ID,
                max_instances=1,
                coalesce=True,
            )
        scheduler.start()
        self._scheduler = scheduler
        self._mode = mode
        logger.info(
            "Reminder scheduler started in %s mode: every minute (%s), cleanup daily at %02d:%02d",
            mode.value.upper(), self._timezone, self._cleanup_hour, self._cleanup_minute,
        )

    def stop(self) -> None:
        """Stop ticking. Safe to call repeatedly; an in-flight tick is left to finish."""
        scheduler, self._scheduler = self._scheduler, None
        previous, self._mode = self._mode, None
        if scheduler is None:
            return
        if scheduler.running:
            scheduler.shutdown(wait=False)
        logger.info("Reminder scheduler stopped (was %s)", previous.value if previous else "stopped")

    async def aclose(self) -> None:
        """Stop and wait for any in-flight tick to finish its bookkeeping."""
        self.stop()
        # Let a deferred APScheduler shutdown run before returning
        await asyncio.sleep(0)
        if self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    async def _tick(self, mode: TickMode) -> None:
        if self._lock.locked():
            logger.warning("Previous reminder cycle still running, skipping this tick")
            metrics.record_tick(mode.value, "skipped")
            return
        task = asyncio.ensure_future(self._run_guarded(mode, raise_faults=False))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        # Shutdown cancels the job coroutine; the shielded cycle still completes its updates
        await asyncio.shield(task)

    async def run_once(self, mode: TickMode = TickMode.PRODUCTION) -> CycleSummary | None:
        """One cycle outside the timer. Waits for an in-flight tick instead of overlapping it."""
        return await self._run_guarded(mode, raise_faults=True)

    async def _run_guarded(self, mode: TickMode, *, raise_faults: bool) -> CycleSummary | None:
        async with self._lock:
            if not await self._authorizer():
                logger.info("Reminder cycle not authorized on this instance, skipping")
                metrics.record_tick(mode.value, "skipped")
                return None
            try:
                return await self._cycle.run(mode)
            except Exception as e:
                fault = SchedulerFault(f"Reminder cycle failed: {type(e).__name__}: {e}")
                logger.exception(fault.message)
                metrics.record_tick(mode.value, "error")
                if raise_faults:
                    raise fault from e
                return None

    async def _run_cleanup(self) -> None:
        try:
            await self._cleanup()
        except Exception as e:
            logger.exception("Subscription cleanup job failed: %s", e)

    def _next_run(self, job_id: str) -> str | None:
        if self._scheduler is None:
            return None
        job = self._scheduler.get_job(job_id)
        next_run = getattr(job, "next_run_time", None) if job else None
        return next_run.isoformat() if next_run else None

    def status(self) -> dict:
        return {
            "mode": self._mode.value if self._mode else "stopped",
            "running": self.running,
            "next_tick": self._next_run(TICK_JOB_ID),
            "next_cleanup": self._next_run(CLEANUP_JOB_ID),
            "cycle_in_progress": self._lock.locked(),
            "timezone": self._timezone,
        }

    def job_ids(self) -> list[str]:
        if self._scheduler is None:
            return []
        return [job.id for job in self._scheduler.get_jobs()]
