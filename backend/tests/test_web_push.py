"""Tests for the Web Push transport: configuration, failure classification, pywebpush calls."""

from unittest.mock import MagicMock, patch

import pytest
from pywebpush import WebPushException

from hydration.core.exceptions import (
    ConfigurationError,
    DeliveryError,
    PermanentDeliveryError,
    TransientDeliveryError,
)
from hydration.services.web_push import FailureKind, WebPushTransport, classify_failure, generate_vapid_keys

KEYS = {"p256dh": "p256dh-key", "auth": "auth-key"}


@pytest.mark.parametrize(
    "status_code,message,expected",
    [
        (410, None, FailureKind.PERMANENT),
        (404, None, FailureKind.PERMANENT),
        (400, None, FailureKind.PERMANENT),
        (429, None, FailureKind.TRANSIENT),
        (500, None, FailureKind.TRANSIENT),
        (503, None, FailureKind.TRANSIENT),
        (None, "Push failed: 410 Gone", FailureKind.PERMANENT),
        (None, "Service Unavailable", FailureKind.TRANSIENT),
        (None, "connection reset", FailureKind.UNKNOWN),
        (403, None, FailureKind.UNKNOWN),
    ],
)
def test_classify_failure(status_code, message, expected):
    assert classify_failure(status_code, message) is expected


def test_unconfigured_transport():
    transport = WebPushTransport("", "", "mailto:a@b.com")
    assert transport.is_configured is False
    with pytest.raises(ConfigurationError):
        transport.public_key
    with pytest.raises(ConfigurationError):
        transport.ensure_configured()


@pytest.mark.asyncio
async def test_send_unconfigured_raises_before_network():
    transport = WebPushTransport("", "", "mailto:a@b.com")
    with patch("hydration.services.web_push.webpush") as webpush:
        with pytest.raises(ConfigurationError):
            await transport.send("https://push.example/1", KEYS, "{}")
    webpush.assert_not_called()


@pytest.mark.asyncio
async def test_send_passes_ttl_urgency_and_fresh_claims():
    transport = WebPushTransport("priv", "pub", "mailto:ops@test.com", request_timeout=5.0)
    with patch("hydration.services.web_push.webpush", return_value=MagicMock(status_code=201)) as webpush:
        result = await transport.send("https://push.example/1", KEYS, '{"title": "x"}', ttl_seconds=600, urgency="high")
        await transport.send("https://push.example/2", KEYS, "{}")
    assert result.status_code == 201
    first, second = webpush.call_args_list
    assert first.kwargs["subscription_info"] == {"endpoint": "https://push.example/1", "keys": KEYS}
    assert first.kwargs["ttl"] == 600
    assert first.kwargs["headers"] == {"Urgency": "high"}
    assert first.kwargs["timeout"] == 5.0
    assert first.kwargs["vapid_private_key"] == "priv"
    assert first.kwargs["vapid_claims"] == {"sub": "mailto:ops@test.com"}
    assert first.kwargs["vapid_claims"] is not second.kwargs["vapid_claims"]


@pytest.mark.asyncio
async def test_send_unknown_urgency_defaults_to_normal():
    transport = WebPushTransport("priv", "pub", "mailto:ops@test.com")
    with patch("hydration.services.web_push.webpush", return_value=MagicMock(status_code=201)) as webpush:
        await transport.send("https://push.example/1", KEYS, "{}", urgency="urgent")
    assert webpush.call_args.kwargs["headers"] == {"Urgency": "normal"}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status_code,error_type",
    [(410, PermanentDeliveryError), (429, TransientDeliveryError), (403, DeliveryError)],
)
async def test_send_maps_push_service_errors(status_code, error_type):
    transport = WebPushTransport("priv", "pub", "mailto:ops@test.com")
    exc = WebPushException("Push failed", response=MagicMock(status_code=status_code))
    with patch("hydration.services.web_push.webpush", side_effect=exc):
        with pytest.raises(DeliveryError) as info:
            await transport.send("https://push.example/1", KEYS, "{}")
    assert type(info.value) is error_type
    assert info.value.status_code == status_code


def test_generate_vapid_keys():
    keys = generate_vapid_keys()
    assert set(keys) == {"public_key", "private_key"}
    assert "=" not in keys["public_key"]
    # Uncompressed P-256 point is 65 bytes -> 87 base64url chars without padding
    assert len(keys["public_key"]) == 87
    assert len(keys["private_key"]) == 43
