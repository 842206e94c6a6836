"""Tests for scheduler control endpoints and the production lock."""

import logging
from unittest.mock import patch

import pytest
from httpx import AsyncClient

from conftest import create_subscription
from hydration.config import settings
from hydration.main import configure_logging


@pytest.mark.asyncio
async def test_status_stopped(client: AsyncClient, auth_headers: dict):
    resp = await client.get("/api/v1/scheduler/status", headers=auth_headers)
    assert resp.status_code == 200
    data = resp.json()
    assert data["mode"] == "stopped"
    assert data["running"] is False
    assert data["production_locked"] is False


@pytest.mark.asyncio
async def test_switch_modes(client: AsyncClient, auth_headers: dict, reminder_engine):
    test_mode = await client.post("/api/v1/scheduler/test-mode", headers=auth_headers)
    assert test_mode.status_code == 200
    assert test_mode.json()["mode"] == "test"

    production = await client.post("/api/v1/scheduler/production-mode", headers=auth_headers)
    assert production.status_code == 200
    assert production.json()["mode"] == "production"
    assert reminder_engine.scheduler.job_ids().count("hydration-reminder-tick") == 1


@pytest.mark.asyncio
async def test_trigger_runs_a_test_cycle(client: AsyncClient, auth_headers: dict, test_user, push_transport):
    user_id, _, _ = test_user
    await create_subscription(user_id, "https://push.example/1")

    resp = await client.post("/api/v1/scheduler/trigger", headers=auth_headers)
    assert resp.status_code == 200
    data = resp.json()
    assert data["mode"] == "test"
    assert data["checked"] == 1


@pytest.mark.asyncio
async def test_trigger_invalid_mode(client: AsyncClient, auth_headers: dict):
    resp = await client.post("/api/v1/scheduler/trigger?mode=turbo", headers=auth_headers)
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_production_lock(client: AsyncClient, auth_headers: dict, reminder_engine):
    with patch.object(reminder_engine.controller, "_production_locked", True):
        test_mode = await client.post("/api/v1/scheduler/test-mode", headers=auth_headers)
        trigger = await client.post("/api/v1/scheduler/trigger?mode=production", headers=auth_headers)
        production = await client.post("/api/v1/scheduler/production-mode", headers=auth_headers)
    assert test_mode.status_code == 403
    assert trigger.status_code == 403
    assert production.status_code == 200


@pytest.mark.asyncio
async def test_scheduler_requires_auth(client: AsyncClient):
    resp = await client.get("/api/v1/scheduler/status")
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_engine_missing_returns_503(client: AsyncClient, auth_headers: dict):
    from hydration.main import app

    app.state.reminders = None
    resp = await client.get("/api/v1/scheduler/status", headers=auth_headers)
    assert resp.status_code == 503


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "scheduler": None, "push_configured": True}


@pytest.mark.parametrize("debug,level", [(False, logging.INFO), (True, logging.DEBUG)])
def test_logging_level_follows_debug_setting(debug, level):
    with patch.object(settings, "debug", debug):
        configure_logging()
    assert logging.getLogger("hydration").level == level
    configure_logging()
