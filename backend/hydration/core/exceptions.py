"""Error taxonomy of the reminder engine."""

from __future__ import annotations

from typing import Any


class HydrationError(Exception):
    """Base exception for the application."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ConfigurationError(HydrationError):
    """Push transport keys (VAPID) are missing; every send would fail."""


class ValidationError(HydrationError):
    """Malformed subscription record (endpoint or key material)."""


class DeliveryError(HydrationError):
    """A push send failed at the transport."""

    permanent = False
    transient = False

    def __init__(self, message: str, status_code: int | None = None, details: dict[str, Any] | None = None):
        super().__init__(message, details)
        self.status_code = status_code


class TransientDeliveryError(DeliveryError):
    """Rate-limited or server-side failure; a later tick may succeed."""

    transient = True


class PermanentDeliveryError(DeliveryError):
    """Endpoint gone, unknown or malformed; unlikely to ever succeed."""

    permanent = True


class SchedulerFault(HydrationError):
    """Unexpected failure inside a reminder tick."""


class ProductionLockedError(HydrationError):
    """Operation is disabled because the deployment is production-locked."""
