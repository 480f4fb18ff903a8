"""Tests for OTP email delivery."""

from unittest.mock import patch

import httpx
import pytest

from restodesk.services.notifications import EmailNotifier, mask_email


@pytest.mark.parametrize(
    ("email", "masked"),
    [
        ("alice@example.com", "a***e@example.com"),
        ("ab@example.com", "a***@example.com"),
        ("a@example.com", "a***@example.com"),
        ("not-an-email", "***"),
    ],
)
def test_mask_email(email, masked):
    assert mask_email(email) == masked


def _patched_client(handler):
    """Route the notifier's AsyncClient through an in-process transport."""
    real_client = httpx.AsyncClient

    def factory(*args, **kwargs):
        kwargs["transport"] = httpx.MockTransport(handler)
        return real_client(*args, **kwargs)

    return patch("restodesk.services.notifications.httpx.AsyncClient", side_effect=factory)


@pytest.mark.asyncio
class TestEmailNotifier:
    async def test_without_relay_reports_not_delivered(self):
        notifier = EmailNotifier(webhook_url="")
        assert await notifier.send_otp("a@example.com", "123456") is False

    async def test_posts_payload_to_relay(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["url"] = str(request.url)
            captured["body"] = request.read()
            return httpx.Response(202)

        notifier = EmailNotifier(webhook_url="https://relay.example/send")
        with _patched_client(handler):
            assert await notifier.send_otp("a@example.com", "123456") is True

        assert captured["url"] == "https://relay.example/send"
        assert b'"to":"a@example.com"' in captured["body"].replace(b" ", b"")
        assert b"123456" in captured["body"]

    async def test_relay_error_status(self, caplog):
        notifier = EmailNotifier(webhook_url="https://relay.example/send")
        with _patched_client(lambda request: httpx.Response(500)):
            assert await notifier.send_otp("alice@example.com", "123456") is False
        assert "OTP delivery to a***e@example.com failed: HTTP 500" in caplog.text
        assert "alice@example.com" not in caplog.text

    async def test_network_failure_is_swallowed(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        notifier = EmailNotifier(webhook_url="https://relay.example/send")
        with _patched_client(handler):
            assert await notifier.send_otp("a@example.com", "123456") is False
