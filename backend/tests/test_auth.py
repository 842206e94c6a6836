"""Tests for auth endpoints: register, login, me; JWT helpers."""

from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient
from jose import JWTError, jwt

from conftest import create_user
from hydration.config import settings
from hydration.core.auth import create_access_token, decode_token


@pytest.mark.asyncio
async def test_register(client: AsyncClient, clean_db):
    resp = await client.post(
        "/api/v1/auth/register",
        json={"email": "NewUser@test.com", "password": "securepass123", "name": "  New  "},
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["user"]["email"] == "newuser@test.com"
    assert data["user"]["name"] == "New"
    assert "access_token" in data
    assert data["token_type"] == "bearer"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [
        {"email": "", "password": "securepass123"},
        {"email": "not-an-email", "password": "securepass123"},
        {"email": "short@test.com", "password": "12345"},
    ],
)
async def test_register_rejects_invalid_input(client: AsyncClient, clean_db, body):
    resp = await client.post("/api/v1/auth/register", json=body)
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_register_duplicate_email(client: AsyncClient, clean_db):
    await create_user("dup@test.com")
    resp = await client.post(
        "/api/v1/auth/register",
        json={"email": "dup@test.com", "password": "otherpass"},
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_login(client: AsyncClient, auth_headers: dict):
    resp = await client.post(
        "/api/v1/auth/login",
        json={"email": "test@test.com", "password": "password123"},
    )
    assert resp.status_code == 200
    assert resp.json()["user"]["email"] == "test@test.com"


@pytest.mark.asyncio
async def test_login_wrong_password(client: AsyncClient, auth_headers: dict):
    resp = await client.post(
        "/api/v1/auth/login",
        json={"email": "test@test.com", "password": "wrong"},
    )
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_me(client: AsyncClient, auth_headers: dict):
    resp = await client.get("/api/v1/auth/me", headers=auth_headers)
    assert resp.status_code == 200
    assert resp.json()["email"] == "test@test.com"


@pytest.mark.asyncio
async def test_me_unauthorized(client: AsyncClient):
    resp = await client.get("/api/v1/auth/me")
    assert resp.status_code == 401


def test_token_roundtrip():
    payload = decode_token(create_access_token(user_id=42, email="u@example.com"))
    assert payload["sub"] == "42"
    assert payload["email"] == "u@example.com"


def test_expired_token_rejected():
    token = jwt.encode(
        {"sub": "1", "email": "u@test.com", "exp": datetime.now(timezone.utc) - timedelta(minutes=1)},
        settings.secret_key,
        algorithm=settings.jwt_algorithm,
    )
    with pytest.raises(JWTError):
        decode_token(token)


@pytest.mark.asyncio
async def test_update_profile(client: AsyncClient, auth_headers: dict):
    resp = await client.put(
        "/api/v1/auth/profile",
        headers=auth_headers,
        json={"name": " Sam ", "daily_goal_ml": 2500, "default_water_amount_ml": 300, "notification_start_hour": 8},
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["message"] == "Profile updated successfully"
    assert data["user"]["name"] == "Sam"
    assert data["preferences"]["daily_goal_ml"] == 2500
    assert data["preferences"]["default_water_amount_ml"] == 300
    assert data["preferences"]["notification_start_hour"] == 8


@pytest.mark.asyncio
async def test_update_profile_rejects_out_of_range_goal(client: AsyncClient, auth_headers: dict):
    resp = await client.put("/api/v1/auth/profile", headers=auth_headers, json={"daily_goal_ml": 100})
    assert resp.status_code == 400
    prefs = await client.get("/api/v1/users/me/preferences", headers=auth_headers)
    assert prefs.json()["daily_goal_ml"] == 2000


@pytest.mark.asyncio
async def test_change_password(client: AsyncClient, auth_headers: dict, test_user):
    _, email, _ = test_user
    resp = await client.post(
        "/api/v1/auth/change-password",
        headers=auth_headers,
        json={"current_password": "password123", "new_password": "newpass456"},
    )
    assert resp.status_code == 200
    assert resp.json() == {"message": "Password changed successfully"}

    old = await client.post("/api/v1/auth/login", json={"email": email, "password": "password123"})
    assert old.status_code == 401
    new = await client.post("/api/v1/auth/login", json={"email": email, "password": "newpass456"})
    assert new.status_code == 200


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body,status",
    [
        ({"current_password": "password123"}, 400),
        ({"current_password": "password123", "new_password": "short"}, 400),
        ({"current_password": "wrong-password", "new_password": "newpass456"}, 401),
    ],
)
async def test_change_password_rejects(client: AsyncClient, auth_headers: dict, body, status):
    resp = await client.post("/api/v1/auth/change-password", headers=auth_headers, json=body)
    assert resp.status_code == status
