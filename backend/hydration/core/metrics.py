"""Prometheus counters for the reminder engine (exposed on /metrics)."""

from __future__ import annotations

from typing import TYPE_CHECKING

from prometheus_client import Counter

if TYPE_CHECKING:
    from hydration.services.delivery import DeliverySummary

reminder_ticks_total = Counter(
    "hydration_reminder_ticks_total",
    "Reminder ticks by mode and outcome",
    ["mode", "outcome"],
)
reminder_notifications_total = Counter(
    "hydration_reminder_notifications_total",
    "Push notifications by delivery outcome",
    ["mode", "outcome"],
)
reminder_delivery_failures_total = Counter(
    "hydration_reminder_delivery_failures_total",
    "Failed push sends by failure classification",
    ["mode", "kind"],
)
subscriptions_deactivated_total = Counter(
    "hydration_subscriptions_deactivated_total",
    "Subscriptions deactivated after reaching the failure threshold",
)
subscriptions_cleaned_total = Counter(
    "hydration_subscriptions_cleaned_total",
    "Subscriptions deleted by the daily cleanup",
)


def record_tick(mode: str, outcome: str) -> None:
    """outcome: sent | idle | skipped | misconfigured | error."""
    reminder_ticks_total.labels(mode=mode, outcome=outcome).inc()


def record_deliveries(mode: str, summary: DeliverySummary) -> None:
    if summary.sent:
        reminder_notifications_total.labels(mode=mode, outcome="success").inc(summary.sent)
    if summary.failed:
        reminder_notifications_total.labels(mode=mode, outcome="failure").inc(summary.failed)
    unknown = summary.failed - summary.permanent - summary.transient
    for kind, count in (("permanent", summary.permanent), ("transient", summary.transient), ("unknown", unknown)):
        if count:
            reminder_delivery_failures_total.labels(mode=mode, kind=kind).inc(count)


def record_deactivations(count: int) -> None:
    if count:
        subscriptions_deactivated_total.inc(count)


def record_cleanup(count: int) -> None:
    if count:
        subscriptions_cleaned_total.inc(count)
