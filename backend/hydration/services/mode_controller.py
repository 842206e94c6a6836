"""Operational controls over the reminder scheduler (test mode, production mode, manual trigger)."""

import logging

from hydration.core.exceptions import ProductionLockedError
from hydration.schemas.reminder import TickMode
from hydration.services.reminders import CycleSummary
from hydration.services.scheduler import ReminderScheduler

logger = logging.getLogger(__name__)


class ModeController:
    def __init__(self, scheduler: ReminderScheduler, *, production_locked: bool = False):
        self._scheduler = scheduler
        self._production_locked = production_locked

    @property
    def production_locked(self) -> bool:
        return self._production_locked

    def _ensure_unlocked(self, operation: str) -> None:
        if self._production_locked:
            logger.warning("%s refused: deployment is production-locked", operation)
            raise ProductionLockedError(f"{operation} is disabled in production")

    def enter_test_mode(self) -> dict:
        self._ensure_unlocked("Test mode")
        self._scheduler.start_test()
        logger.info("Test mode activated: accelerated cadence, evaluated every minute")
        return self.get_status()

    def enter_production_mode(self) -> dict:
        self._scheduler.start()
        logger.info("Production mode activated")
        return self.get_status()

    def stop(self) -> dict:
        self._scheduler.stop()
        return self.get_status()

    async def trigger_once(self, mode: TickMode = TickMode.TEST) -> CycleSummary | None:
        """Run one cycle now through the same path the ticker uses."""
        self._ensure_unlocked("Manual trigger")
        logger.info("Manual trigger activated (%s)", mode.value)
        return await self._scheduler.run_once(mode)

    def get_status(self) -> dict:
        status = self._scheduler.status()
        status["production_locked"] = self._production_locked
        return status
