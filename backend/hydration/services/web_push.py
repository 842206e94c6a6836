"""Web Push transport: VAPID-signed sends via pywebpush, failure classification, key generation."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum

from pywebpush import WebPushException, webpush

from hydration.config import settings
from hydration.core.exceptions import (
    ConfigurationError,
    DeliveryError,
    PermanentDeliveryError,
    TransientDeliveryError,
)

logger = logging.getLogger(__name__)

PERMANENT_STATUS_CODES = frozenset({400, 404, 410})
PERMANENT_MARKERS = ("Gone", "Not Found", "Bad Request")
TRANSIENT_MARKERS = ("Too Many Requests", "Internal Server Error", "Service Unavailable")
URGENCY_VALUES = ("very-low", "low", "normal", "high")


class FailureKind(str, Enum):
    PERMANENT = "permanent"
    TRANSIENT = "transient"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class SendResult:
    status_code: int


def classify_failure(status_code: int | None, message: str | None = None) -> FailureKind:
    """Permanent: endpoint gone/unknown/malformed. Transient: rate limited or 5xx."""
    if status_code is not None:
        if status_code in PERMANENT_STATUS_CODES:
            return FailureKind.PERMANENT
        if status_code == 429 or 500 <= status_code <= 599:
            return FailureKind.TRANSIENT
    text = message or ""
    if any(marker in text for marker in PERMANENT_MARKERS):
        return FailureKind.PERMANENT
    if any(marker in text for marker in TRANSIENT_MARKERS):
        return FailureKind.TRANSIENT
    return FailureKind.UNKNOWN


def _delivery_error(message: str, status_code: int | None) -> DeliveryError:
    kind = classify_failure(status_code, message)
    if kind is FailureKind.PERMANENT:
        return PermanentDeliveryError(message, status_code=status_code)
    if kind is FailureKind.TRANSIENT:
        return TransientDeliveryError(message, status_code=status_code)
    return DeliveryError(message, status_code=status_code)


class WebPushTransport:
    """Sends encrypted payloads to push service endpoints. Keys are fixed at construction."""

    def __init__(
        self,
        vapid_private_key: str,
        vapid_public_key: str,
        vapid_subject: str,
        *,
        request_timeout: float = 10.0,
    ):
        self._private_key = (vapid_private_key or "").strip()
        self._public_key = (vapid_public_key or "").strip()
        self._subject = vapid_subject
        self._request_timeout = request_timeout

    @classmethod
    def from_settings(cls) -> "WebPushTransport":
        return cls(
            settings.vapid_private_key,
            settings.vapid_public_key,
            settings.vapid_subject,
            request_timeout=settings.push_request_timeout_seconds,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self._private_key and self._public_key)

    @property
    def public_key(self) -> str:
        if not self._public_key:
            raise ConfigurationError("VAPID public key not configured")
        return self._public_key

    def ensure_configured(self) -> None:
        if not self.is_configured:
            raise ConfigurationError(
                "VAPID keys not configured; run 'python scripts/notifications.py generate-vapid'"
            )

    def _send_blocking(self, subscription_info: dict, payload_json: str, ttl_seconds: int, urgency: str):
        return webpush(
            subscription_info=subscription_info,
            data=payload_json,
            vapid_private_key=self._private_key,
            # pywebpush writes "aud"/"exp" into the claims dict; give each send its own copy
            vapid_claims={"sub": self._subject},
            ttl=ttl_seconds,
            headers={"Urgency": urgency},
            timeout=self._request_timeout,
        )

    async def send(
        self,
        endpoint: str,
        keys: dict[str, str],
        payload_json: str,
        *,
        ttl_seconds: int = 3600,
        urgency: str = "normal",
    ) -> SendResult:
        """Send one notification. Raises ConfigurationError or a DeliveryError subclass."""
        self.ensure_configured()
        if urgency not in URGENCY_VALUES:
            urgency = "normal"
        subscription_info = {"endpoint": endpoint, "keys": {"p256dh": keys["p256dh"], "auth": keys["auth"]}}
        try:
            response = await asyncio.to_thread(
                self._send_blocking, subscription_info, payload_json, ttl_seconds, urgency
            )
        except WebPushException as e:
            status_code = e.response.status_code if e.response is not None else None
            raise _delivery_error(str(e.message or e), status_code) from e
        status_code = getattr(response, "status_code", 201)
        return SendResult(status_code=status_code)


def generate_vapid_keys() -> dict[str, str]:
    """New VAPID key pair as base64url strings (public: uncompressed P-256 point, private: raw scalar)."""
    from cryptography.hazmat.primitives import serialization
    from py_vapid import Vapid
    from py_vapid.utils import b64urlencode

    vapid = Vapid()
    vapid.generate_keys()
    public_bytes = vapid.public_key.public_bytes(
        serialization.Encoding.X962,
        serialization.PublicFormat.UncompressedPoint,
    )
    private_bytes = vapid.private_key.private_numbers().private_value.to_bytes(32, "big")
    return {
        "public_key": b64urlencode(public_bytes),
        "private_key": b64urlencode(private_bytes),
    }
