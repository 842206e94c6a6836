"""
Delivery dispatcher: fan a payload out to many push subscriptions concurrently.

Settle-all semantics: every subscription yields exactly one DeliveryResult, in input order,
and no per-subscription failure escapes as an exception.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass

from hydration.core.exceptions import DeliveryError
from hydration.models.push_subscription import PushSubscription
from hydration.schemas.notification import NotificationPayload
from hydration.services.web_push import FailureKind, WebPushTransport, classify_failure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeliveryResult:
    subscription_id: int
    endpoint: str
    success: bool
    status_code: int | None = None
    error: str | None = None
    failure_kind: FailureKind | None = None


@dataclass(frozen=True)
class DeliverySummary:
    total: int
    sent: int
    failed: int
    permanent: int
    transient: int


async def _send_one(
    transport: WebPushTransport,
    subscription: PushSubscription,
    payload_json: str,
    ttl_seconds: int,
    urgency: str,
) -> DeliveryResult:
    try:
        result = await transport.send(
            subscription.endpoint,
            {"p256dh": subscription.p256dh_key, "auth": subscription.auth_key},
            payload_json,
            ttl_seconds=ttl_seconds,
            urgency=urgency,
        )
    except DeliveryError as e:
        if e.permanent:
            kind = FailureKind.PERMANENT
        elif e.transient:
            kind = FailureKind.TRANSIENT
        else:
            kind = classify_failure(e.status_code, e.message)
        logger.warning(
            "Push failed for subscription_id=%s (%s, status=%s): %s",
            subscription.id, kind.value, e.status_code, e.message,
        )
        return DeliveryResult(
            subscription_id=subscription.id,
            endpoint=subscription.endpoint,
            success=False,
            status_code=e.status_code,
            error=e.message,
            failure_kind=kind,
        )
    return DeliveryResult(
        subscription_id=subscription.id,
        endpoint=subscription.endpoint,
        success=True,
        status_code=result.status_code,
    )


async def dispatch(
    subscriptions: Sequence[PushSubscription],
    payload: NotificationPayload,
    transport: WebPushTransport,
    *,
    ttl_seconds: int = 3600,
    urgency: str = "normal",
) -> list[DeliveryResult]:
    """
    Send payload to every subscription concurrently and wait for all of them to settle.
    Raises ConfigurationError before any send when the transport has no VAPID keys.
    """
    transport.ensure_configured()
    if not subscriptions:
        return []
    payload_json = payload.to_json()
    outcomes = await asyncio.gather(
        *[_send_one(transport, sub, payload_json, ttl_seconds, urgency) for sub in subscriptions],
        return_exceptions=True,
    )

    results: list[DeliveryResult] = []
    for sub, outcome in zip(subscriptions, outcomes):
        if isinstance(outcome, DeliveryResult):
            results.append(outcome)
            continue
        if not isinstance(outcome, Exception):
            # CancelledError and other BaseExceptions are not delivery outcomes
            raise outcome
        message = str(outcome) or type(outcome).__name__
        logger.warning(
            "Push send raised for subscription_id=%s: %s: %s",
            sub.id, type(outcome).__name__, message,
        )
        results.append(
            DeliveryResult(
                subscription_id=sub.id,
                endpoint=sub.endpoint,
                success=False,
                error=message,
                failure_kind=classify_failure(None, message),
            )
        )

    summary = summarize(results)
    logger.info("Bulk notifications sent: %s successful, %s failed", summary.sent, summary.failed)
    return results


def summarize(results: Sequence[DeliveryResult]) -> DeliverySummary:
    sent = sum(1 for r in results if r.success)
    return DeliverySummary(
        total=len(results),
        sent=sent,
        failed=len(results) - sent,
        permanent=sum(1 for r in results if r.failure_kind is FailureKind.PERMANENT),
        transient=sum(1 for r in results if r.failure_kind is FailureKind.TRANSIENT),
    )
