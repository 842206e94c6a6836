"""
Command-line controls for the reminder engine.

Usage: python scripts/notifications.py <command>
  test-start      run the ticker in test mode until interrupted
  trigger         one test-mode cycle now
  trigger-prod    one production-mode cycle now
  status          scheduler configuration and deliverable subscriptions
  cleanup         delete stale subscriptions now
  generate-vapid  print a fresh VAPID key pair for .env
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from dataclasses import asdict

from hydration.config import settings
from hydration.core.exceptions import HydrationError
from hydration.db.session import async_session_maker, engine as db_engine, init_db
from hydration.schemas.reminder import TickMode
from hydration.services.engine import build_reminder_engine
from hydration.services.subscriptions import list_active_subscriptions_with_owner_prefs, run_cleanup
from hydration.services.web_push import generate_vapid_keys

logger = logging.getLogger("hydration.cli")


def _print_summary(summary) -> None:
    if summary is None:
        print("Cycle skipped (not authorized on this instance)")
        return
    data = asdict(summary)
    data["mode"] = summary.mode.value
    for key, value in data.items():
        print(f"  {key}: {value}")
    print(f"  success_rate: {summary.success_rate}%")


async def _test_start() -> None:
    await init_db()
    reminders = build_reminder_engine()
    status = reminders.controller.enter_test_mode()
    print(f"Test mode running ({status['timezone']}), next tick {status['next_tick']}. Ctrl+C to stop.")
    try:
        await asyncio.Event().wait()
    finally:
        await reminders.scheduler.aclose()
        print("Test mode stopped")


async def _trigger(mode: TickMode) -> None:
    await init_db()
    reminders = build_reminder_engine()
    try:
        summary = await reminders.controller.trigger_once(mode)
    finally:
        await reminders.scheduler.aclose()
    print(f"Manual {mode.value} cycle finished:")
    _print_summary(summary)


async def _status() -> None:
    reminders = build_reminder_engine()
    status = reminders.controller.get_status()
    async with async_session_maker() as session:
        subscriptions = await list_active_subscriptions_with_owner_prefs(session)
    print(f"  app_env: {settings.app_env}")
    print(f"  production_locked: {status['production_locked']}")
    print(f"  push_configured: {reminders.transport.is_configured}")
    print(f"  timezone: {status['timezone']}")
    print(f"  per_user_timezone: {settings.per_user_timezone}")
    print(f"  deliverable_subscriptions: {len(subscriptions)}")


async def _cleanup() -> None:
    removed = await run_cleanup(async_session_maker)
    print(f"Removed {removed} stale subscriptions")


def _generate_vapid() -> None:
    keys = generate_vapid_keys()
    print("Add these to your .env:")
    print(f"VAPID_PUBLIC_KEY={keys['public_key']}")
    print(f"VAPID_PRIVATE_KEY={keys['private_key']}")
    print(f"VAPID_SUBJECT={settings.vapid_subject}")


async def _run_async(command: str) -> None:
    try:
        if command == "test-start":
            await _test_start()
        elif command == "trigger":
            await _trigger(TickMode.TEST)
        elif command == "trigger-prod":
            await _trigger(TickMode.PRODUCTION)
        elif command == "status":
            await _status()
        elif command == "cleanup":
            await _cleanup()
    finally:
        await db_engine.dispose()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="notifications",
        description="Hydration reminder scheduler controls",
    )
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("test-start", help="Run the ticker in test mode until interrupted")
    sub.add_parser("trigger", help="Run one test-mode reminder cycle now")
    sub.add_parser("trigger-prod", help="Run one production-mode reminder cycle now")
    sub.add_parser("status", help="Show scheduler configuration and deliverable subscriptions")
    sub.add_parser("cleanup", help="Delete stale push subscriptions now")
    sub.add_parser("generate-vapid", help="Generate a VAPID key pair")
    parser.add_argument("--debug", action="store_true", help="Verbose logging")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stdout,
    )
    if args.debug:
        logging.getLogger("hydration").setLevel(logging.DEBUG)

    if args.command == "generate-vapid":
        _generate_vapid()
        return 0
    try:
        asyncio.run(_run_async(args.command))
    except KeyboardInterrupt:
        return 0
    except HydrationError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
