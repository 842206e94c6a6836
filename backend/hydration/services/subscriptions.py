"""Subscription store: validation, upsert, listing, delivery bookkeeping and cleanup."""

import logging
from collections.abc import Sequence
from datetime import datetime, timedelta, timezone
from urllib.parse import urlparse

from sqlalchemy import case, delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from hydration.config import settings
from hydration.core import metrics
from hydration.core.exceptions import ValidationError
from hydration.models.push_subscription import PushSubscription
from hydration.services.delivery import DeliveryResult

logger = logging.getLogger(__name__)


def validate_subscription(endpoint: str | None, keys: dict | None) -> tuple[str, str, str]:
    """Return (endpoint, p256dh, auth) or raise ValidationError."""
    endpoint = (endpoint or "").strip()
    if not endpoint:
        raise ValidationError("Subscription endpoint is required")
    parsed = urlparse(endpoint)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValidationError("Invalid subscription endpoint URL", {"endpoint": endpoint[:200]})
    keys = keys or {}
    p256dh = (keys.get("p256dh") or "").strip()
    auth = (keys.get("auth") or "").strip()
    if not p256dh or not auth:
        raise ValidationError("Missing required subscription keys (p256dh, auth)")
    return endpoint, p256dh, auth


async def upsert_subscription(
    session: AsyncSession,
    user_id: int,
    endpoint: str | None,
    keys: dict | None,
    user_agent: str | None = None,
    *,
    default_user_agent: str | None = None,
) -> tuple[PushSubscription, bool]:
    """
    Register an endpoint for user_id. Same user + endpoint updates in place and re-activates;
    an endpoint owned by another user (shared browser profile) is replaced.
    default_user_agent only fills a newly created row; updates keep the stored agent
    unless user_agent is given.
    Returns (subscription, created).
    """
    endpoint, p256dh, auth = validate_subscription(endpoint, keys)
    r = await session.execute(select(PushSubscription).where(PushSubscription.endpoint == endpoint))
    existing = r.scalar_one_or_none()

    if existing is not None and existing.user_id == user_id:
        existing.p256dh_key = p256dh
        existing.auth_key = auth
        existing.user_agent = user_agent or existing.user_agent
        existing.is_active = True
        existing.failed_attempts = 0
        existing.last_error = None
        await session.flush()
        return existing, False

    if existing is not None:
        logger.info(
            "Replacing subscription_id=%s for endpoint now claimed by user_id=%s (was user_id=%s)",
            existing.id, user_id, existing.user_id,
        )
        await session.delete(existing)
        await session.flush()

    subscription = PushSubscription(
        user_id=user_id,
        endpoint=endpoint,
        p256dh_key=p256dh,
        auth_key=auth,
        user_agent=user_agent or default_user_agent,
    )
    session.add(subscription)
    await session.flush()
    logger.info("New push subscription created for user_id=%s", user_id)
    return subscription, True


async def remove_subscription(session: AsyncSession, user_id: int, endpoint: str) -> bool:
    r = await session.execute(
        delete(PushSubscription).where(
            PushSubscription.user_id == user_id,
            PushSubscription.endpoint == endpoint,
        )
    )
    return (r.rowcount or 0) > 0


async def remove_subscription_by_id(session: AsyncSession, user_id: int, subscription_id: int) -> bool:
    r = await session.execute(
        delete(PushSubscription).where(
            PushSubscription.user_id == user_id,
            PushSubscription.id == subscription_id,
        )
    )
    return (r.rowcount or 0) > 0


async def list_user_subscriptions(session: AsyncSession, user_id: int) -> list[PushSubscription]:
    """Active subscriptions of one user that are still under the failure threshold."""
    r = await session.execute(
        select(PushSubscription)
        .where(
            PushSubscription.user_id == user_id,
            PushSubscription.is_active.is_(True),
            PushSubscription.failed_attempts < settings.subscription_failure_threshold,
        )
        .order_by(PushSubscription.id)
    )
    return list(r.scalars().all())


async def list_active_subscriptions_with_owner_prefs(session: AsyncSession) -> list[PushSubscription]:
    """All deliverable subscriptions with their owning user (preferences) loaded."""
    r = await session.execute(
        select(PushSubscription)
        .options(selectinload(PushSubscription.user))
        .where(
            PushSubscription.is_active.is_(True),
            PushSubscription.failed_attempts < settings.subscription_failure_threshold,
        )
        .order_by(PushSubscription.id)
    )
    return list(r.scalars().all())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def mark_success(session: AsyncSession, subscription_id: int) -> bool:
    """Reset failure bookkeeping after a delivered notification. False when the row is gone."""
    now = _utcnow()
    r = await session.execute(
        update(PushSubscription)
        .where(PushSubscription.id == subscription_id)
        .values(last_notification_sent=now, failed_attempts=0, last_error=None, is_active=True, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    return (r.rowcount or 0) > 0


async def mark_failure(session: AsyncSession, subscription_id: int, error_message: str) -> bool | None:
    """
    Count a failed send (capped at the failure ceiling) and deactivate at the threshold.
    Returns None when the row is gone, otherwise whether this call deactivated the subscription.
    """
    threshold = settings.subscription_failure_threshold
    ceiling = settings.subscription_failure_ceiling
    attempts = PushSubscription.failed_attempts + 1
    now = _utcnow()
    r = await session.execute(
        update(PushSubscription)
        .where(PushSubscription.id == subscription_id)
        .values(
            failed_attempts=case((attempts >= ceiling, ceiling), else_=attempts),
            last_error=(error_message or "")[:1000] or None,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    if not r.rowcount:
        return None
    # Only the call that crosses the threshold flips is_active
    r = await session.execute(
        update(PushSubscription)
        .where(
            PushSubscription.id == subscription_id,
            PushSubscription.is_active.is_(True),
            PushSubscription.failed_attempts >= threshold,
        )
        .values(is_active=False, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    deactivated = (r.rowcount or 0) > 0
    if deactivated:
        logger.warning(
            "Deactivated subscription_id=%s after %s failed attempts (last error: %s)",
            subscription_id, threshold, error_message,
        )
    return deactivated


async def apply_outcomes(session: AsyncSession, results: Sequence[DeliveryResult]) -> tuple[int, int]:
    """
    Write delivery results back row by row. Subscriptions deleted while the sends were in
    flight are skipped. Returns (succeeded, failed) over the rows actually written.
    """
    succeeded = failed = deactivated = 0
    for result in results:
        if result.success:
            written = await mark_success(session, result.subscription_id)
            succeeded += written
        else:
            outcome = await mark_failure(session, result.subscription_id, result.error or "Unknown error")
            written = outcome is not None
            failed += written
            deactivated += bool(outcome)
        if not written:
            logger.info("Subscription_id=%s removed during delivery, outcome dropped", result.subscription_id)
    metrics.record_deactivations(deactivated)
    return succeeded, failed


async def delete_stale(
    session: AsyncSession,
    older_than_days: int | None = None,
    failure_ceiling: int | None = None,
) -> int:
    """Delete inactive subscriptions untouched for older_than_days, and any at the failure ceiling."""
    days = older_than_days if older_than_days is not None else settings.subscription_retention_days
    ceiling = failure_ceiling if failure_ceiling is not None else settings.subscription_failure_ceiling
    cutoff = datetime.now(timezone.utc) - timedelta(days=days)
    r = await session.execute(
        delete(PushSubscription).where(
            or_(
                (PushSubscription.is_active.is_(False)) & (PushSubscription.updated_at < cutoff),
                PushSubscription.failed_attempts >= ceiling,
            )
        ).execution_options(synchronize_session=False)
    )
    return r.rowcount or 0


async def run_cleanup(session_factory) -> int:
    """Daily maintenance sweep. Errors are logged, never raised to the scheduler."""
    async with session_factory() as session:
        try:
            removed = await delete_stale(session)
            await session.commit()
        except Exception as e:
            logger.exception("Subscription cleanup failed: %s", e)
            await session.rollback()
            return 0
    metrics.record_cleanup(removed)
    logger.info("Subscription cleanup complete: %s subscriptions removed", removed)
    return removed
