"""Outbound email notifications (OTP delivery).

Messages are POSTed as JSON to a mail-relay webhook. Delivery is
best-effort with a short timeout: failures are logged and never raised
into the request that triggered them.
"""

import logging

import httpx

from restodesk.core.config import settings

logger = logging.getLogger(__name__)


def mask_email(email: str) -> str:
    """Mask the local part of an email: ``alice@x.com`` -> ``a***e@x.com``."""
    local, sep, domain = email.partition("@")
    if not sep:
        return "***"
    if len(local) <= 2:
        masked = local[:1] + "***"
    else:
        masked = f"{local[0]}***{local[-1]}"
    return f"{masked}@{domain}"


class EmailNotifier:
    """Sends OTP emails through the configured relay webhook."""

    def __init__(self, webhook_url: str | None = None, timeout: float | None = None):
        self.webhook_url = webhook_url if webhook_url is not None else settings.otp_webhook_url
        self.timeout = timeout if timeout is not None else settings.http_timeout

    def _build_payload(self, email: str, code: str, ttl_minutes: int) -> dict:
        return {
            "from": settings.otp_from_email,
            "to": email,
            "subject": f"{settings.app_name} email verification code",
            "text": (
                f"Your verification code is {code}. "
                f"It expires in {ttl_minutes} minutes."
            ),
            "code": code,
        }

    async def send_otp(self, email: str, code: str, ttl_minutes: int = 5) -> bool:
        """Deliver an OTP. Returns True when the relay accepted the message."""
        if not self.webhook_url:
            logger.warning(f"OTP delivery skipped for {mask_email(email)}: no relay configured")
            if settings.debug:
                logger.debug(f"OTP for {email}: {code}")
            return False

        payload = self._build_payload(email, code, ttl_minutes)
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.webhook_url, json=payload)
            if response.status_code >= 400:
                logger.warning(
                    f"OTP delivery to {mask_email(email)} failed: HTTP {response.status_code}"
                )
                return False
        except httpx.HTTPError as e:
            logger.warning(f"OTP delivery to {mask_email(email)} failed: {e}")
            return False

        logger.info(f"OTP sent to {mask_email(email)}")
        return True
