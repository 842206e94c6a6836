"""Push subscription endpoints: VAPID key, subscribe, unsubscribe, list, delete, toggle, test."""

import logging
from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from hydration.api.deps import get_current_user, get_reminder_engine
from hydration.core.exceptions import ConfigurationError, ValidationError
from hydration.db.session import get_db
from hydration.models.user import User
from hydration.services.engine import ReminderEngine
from hydration.services.reminders import send_test_notification_to_user
from hydration.services.subscriptions import (
    list_user_subscriptions,
    remove_subscription,
    remove_subscription_by_id,
    upsert_subscription,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/notifications", tags=["notifications"])


class SubscriptionKeys(BaseModel):
    p256dh: str | None = None
    auth: str | None = None


class SubscribeBody(BaseModel):
    endpoint: str | None = None
    keys: SubscriptionKeys | None = None
    user_agent: str | None = None


class UnsubscribeBody(BaseModel):
    endpoint: str | None = None


class ToggleBody(BaseModel):
    enabled: bool


class SubscriptionOut(BaseModel):
    id: int
    endpoint: str
    user_agent: str | None
    created_at: datetime | None
    last_notification_sent: datetime | None


@router.get(
    "/vapid-public-key",
    summary="VAPID public key for the browser PushManager",
    responses={503: {"description": "Push notifications not configured"}},
)
async def get_vapid_public_key(engine: Annotated[ReminderEngine, Depends(get_reminder_engine)]):
    try:
        return {"publicKey": engine.transport.public_key}
    except ConfigurationError:
        raise HTTPException(status_code=503, detail="Push notifications are not configured on this server")


@router.post(
    "/subscribe",
    summary="Register this browser for push reminders",
    responses={
        200: {"description": "Existing subscription updated"},
        201: {"description": "Subscription created"},
        400: {"description": "Invalid subscription data"},
        401: {"description": "Not authenticated"},
    },
)
async def subscribe(
    request: Request,
    response: Response,
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    body: SubscribeBody,
):
    keys = body.keys.model_dump() if body.keys else None
    try:
        subscription, created = await upsert_subscription(
            session, user.id, body.endpoint, keys, body.user_agent,
            default_user_agent=request.headers.get("user-agent"),
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.message)
    if created:
        response.status_code = 201
        return {"message": "Successfully subscribed to push notifications", "subscription_id": subscription.id}
    return {"message": "Subscription updated successfully", "subscription_id": subscription.id}


@router.post(
    "/unsubscribe",
    summary="Remove this browser's push subscription",
    responses={400: {"description": "Endpoint required"}, 404: {"description": "Subscription not found"}},
)
async def unsubscribe(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    body: UnsubscribeBody,
):
    if not body.endpoint:
        raise HTTPException(status_code=400, detail="Endpoint is required")
    if not await remove_subscription(session, user.id, body.endpoint):
        raise HTTPException(status_code=404, detail="Subscription not found")
    logger.info("Push subscription removed for user_id=%s", user.id)
    return {"message": "Successfully unsubscribed from push notifications"}


@router.get(
    "/subscriptions",
    summary="List the current user's active subscriptions",
)
async def get_subscriptions(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
):
    subscriptions = await list_user_subscriptions(session, user.id)
    return {
        "subscriptions": [
            SubscriptionOut(
                id=s.id,
                endpoint=s.endpoint,
                user_agent=s.user_agent,
                created_at=s.created_at,
                last_notification_sent=s.last_notification_sent,
            )
            for s in subscriptions
        ],
        "count": len(subscriptions),
    }


@router.delete(
    "/subscriptions/{subscription_id}",
    summary="Delete one of the current user's subscriptions",
    responses={404: {"description": "Subscription not found"}},
)
async def delete_subscription(
    subscription_id: int,
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
):
    if not await remove_subscription_by_id(session, user.id, subscription_id):
        raise HTTPException(status_code=404, detail="Subscription not found")
    return {"message": "Subscription deleted successfully"}


@router.post("/toggle", summary="Turn reminders on or off for the current user")
async def toggle_notifications(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    body: ToggleBody,
):
    user.notifications_enabled = body.enabled
    await session.flush()
    state = "enabled" if body.enabled else "disabled"
    logger.info("Notifications %s for user_id=%s", state, user.id)
    return {"message": f"Notifications {state}", "notifications_enabled": user.notifications_enabled}


@router.post(
    "/test",
    summary="Send the test reminder to the current user's devices",
    responses={
        404: {"description": "No active subscriptions"},
        503: {"description": "Push notifications not configured"},
    },
)
async def send_test_notification(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    engine: Annotated[ReminderEngine, Depends(get_reminder_engine)],
):
    try:
        results = await send_test_notification_to_user(session, user.id, engine.transport)
    except ConfigurationError:
        raise HTTPException(status_code=503, detail="Push notifications are not configured")
    if not results:
        raise HTTPException(
            status_code=404,
            detail="No active subscriptions found. Please enable notifications first.",
        )
    success_count = sum(1 for r in results if r["success"])
    return {
        "message": f"Test notification sent to {success_count} of {len(results)} subscriptions",
        "results": results,
    }
