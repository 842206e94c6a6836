"""Auth: register, login, me, profile, change password."""

import logging
import re
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, ProgrammingError
from sqlalchemy.ext.asyncio import AsyncSession

from hydration.api.deps import get_current_user
from hydration.api.v1.users import PreferencesOut, PreferencesUpdate, apply_preferences, preferences_out
from hydration.config import settings
from hydration.core.auth import create_access_token, hash_password, verify_password
from hydration.db.session import get_db
from hydration.models.user import User

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["auth"])

ACCESS_TOKEN_EXPIRE_SECONDS = settings.access_token_expire_minutes * 60
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_PASSWORD_LENGTH = 6


class RegisterBody(BaseModel):
    email: str
    password: str
    name: str | None = None


class LoginBody(BaseModel):
    email: str
    password: str


class UserOut(BaseModel):
    id: int
    email: str
    name: str | None = None


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds until access token expires
    user: UserOut


def _token_response(user: User) -> TokenResponse:
    return TokenResponse(
        access_token=create_access_token(user.id, user.email),
        expires_in=ACCESS_TOKEN_EXPIRE_SECONDS,
        user=UserOut(id=user.id, email=user.email, name=user.name),
    )


@router.post(
    "/register",
    response_model=TokenResponse,
    summary="Register a new user",
    responses={
        400: {"description": "Invalid email/password or email already registered"},
        500: {"description": "Registration failed or database error"},
    },
)
async def register(
    session: Annotated[AsyncSession, Depends(get_db)],
    body: RegisterBody,
) -> TokenResponse:
    email = (body.email or "").strip().lower()
    password = body.password or ""
    if not email or not password:
        raise HTTPException(status_code=400, detail="Email and password required")
    if not EMAIL_RE.match(email):
        raise HTTPException(status_code=400, detail="Please provide a valid email address")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise HTTPException(status_code=400, detail="Password must be at least 6 characters long")
    name = (body.name or "").strip()[:50] or None
    r = await session.execute(select(User).where(User.email == email))
    if r.scalar_one_or_none() is not None:
        raise HTTPException(status_code=400, detail="Email already registered")
    try:
        user = User(email=email, password_hash=hash_password(password), name=name)
        session.add(user)
        await session.flush()
        await session.refresh(user)
    except IntegrityError as e:
        logger.warning("Register IntegrityError: %s", e)
        raise HTTPException(status_code=400, detail="Email already registered") from e
    except ProgrammingError as e:
        logger.exception("Register DB schema error: %s", e)
        detail = "Database schema error. Run: alembic upgrade head"
        if settings.debug:
            detail += f" ({str(e)})"
        raise HTTPException(status_code=500, detail=detail) from e
    logger.info("User registered: user_id=%s", user.id)
    return _token_response(user)


@router.post(
    "/login",
    response_model=TokenResponse,
    summary="Login with email and password",
    responses={
        401: {"description": "Invalid email or password"},
    },
)
async def login(
    session: Annotated[AsyncSession, Depends(get_db)],
    body: LoginBody,
) -> TokenResponse:
    email = (body.email or "").strip().lower()
    password = body.password or ""
    if not email or not password:
        raise HTTPException(status_code=401, detail="Email and password required")
    r = await session.execute(select(User).where(User.email == email))
    user = r.scalar_one_or_none()
    if not user or not user.password_hash:
        raise HTTPException(status_code=401, detail="Invalid email or password")
    if not verify_password(password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid email or password")
    return _token_response(user)


@router.get(
    "/me",
    response_model=UserOut,
    summary="Get current authenticated user",
    responses={
        401: {"description": "Not authenticated or invalid token"},
    },
)
async def me(user: Annotated[User, Depends(get_current_user)]) -> UserOut:
    return UserOut(id=user.id, email=user.email, name=user.name)


class ChangePasswordBody(BaseModel):
    current_password: str | None = None
    new_password: str | None = None


class ProfileOut(BaseModel):
    message: str
    user: UserOut
    preferences: PreferencesOut


@router.put(
    "/profile",
    response_model=ProfileOut,
    summary="Update name and reminder preferences",
    responses={
        400: {"description": "Invalid hour, frequency, timezone or amount"},
        401: {"description": "Not authenticated"},
        403: {"description": "Test frequency not allowed for this account"},
    },
)
async def update_profile(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    body: PreferencesUpdate,
) -> ProfileOut:
    apply_preferences(user, body)
    await session.flush()
    logger.info("Profile updated for user_id=%s", user.id)
    return ProfileOut(
        message="Profile updated successfully",
        user=UserOut(id=user.id, email=user.email, name=user.name),
        preferences=preferences_out(user),
    )


@router.post(
    "/change-password",
    summary="Change password",
    responses={
        400: {"description": "Missing fields or new password too short"},
        401: {"description": "Current password is incorrect"},
    },
)
async def change_password(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    body: ChangePasswordBody,
) -> dict[str, str]:
    if not body.current_password or not body.new_password:
        raise HTTPException(status_code=400, detail="Current password and new password are required")
    if len(body.new_password) < MIN_PASSWORD_LENGTH:
        raise HTTPException(status_code=400, detail="New password must be at least 6 characters long")
    if not user.password_hash or not verify_password(body.current_password, user.password_hash):
        raise HTTPException(status_code=401, detail="Current password is incorrect")
    user.password_hash = hash_password(body.new_password)
    await session.flush()
    logger.info("Password changed for user_id=%s", user.id)
    return {"message": "Password changed successfully"}
