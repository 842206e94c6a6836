"""Composition of the reminder engine; owned by whoever runs it (app lifespan or CLI)."""

from __future__ import annotations

from dataclasses import dataclass

from hydration.config import settings
from hydration.db.session import async_session_maker
from hydration.services.mode_controller import ModeController
from hydration.services.reminders import ReminderCycle
from hydration.services.scheduler import ReminderScheduler, TickAuthorizer, always_authorized
from hydration.services.subscriptions import run_cleanup
from hydration.services.web_push import WebPushTransport


@dataclass
class ReminderEngine:
    transport: WebPushTransport
    cycle: ReminderCycle
    scheduler: ReminderScheduler
    controller: ModeController


def build_reminder_engine(
    session_factory=None,
    transport: WebPushTransport | None = None,
    authorizer: TickAuthorizer = always_authorized,
) -> ReminderEngine:
    session_factory = session_factory or async_session_maker
    transport = transport or WebPushTransport.from_settings()
    cycle = ReminderCycle(session_factory, transport)

    async def cleanup() -> int:
        return await run_cleanup(session_factory)

    scheduler = ReminderScheduler(cycle, cleanup=cleanup, authorizer=authorizer)
    controller = ModeController(scheduler, production_locked=settings.production_locked)
    return ReminderEngine(transport=transport, cycle=cycle, scheduler=scheduler, controller=controller)
