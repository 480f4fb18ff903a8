"""Request utility functions for handling common request operations."""

import ipaddress
import logging

from fastapi import Request

from restodesk.core.config import settings

logger = logging.getLogger(__name__)


def _is_valid_ip(ip_str: str) -> bool:
    """Check if a string is a valid IP address."""
    try:
        ipaddress.ip_address(ip_str)
        return True
    except ValueError:
        return False


def get_client_ip(request: Request) -> str:
    """Get the client IP address from a request.

    X-Forwarded-For and X-Real-IP are honoured only when the direct peer is
    listed in ``TRUSTED_PROXY_IPS``; otherwise the socket address is used.
    """
    direct_ip = request.client.host if request.client else None
    trusted = settings.trusted_proxy_ips_set

    if trusted and direct_ip in trusted:
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            client_ip = forwarded.split(",")[0].strip()
            if _is_valid_ip(client_ip):
                return client_ip
            logger.warning(f"Invalid IP in X-Forwarded-For header: {client_ip}")

        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            if _is_valid_ip(real_ip.strip()):
                return real_ip.strip()
            logger.warning(f"Invalid IP in X-Real-IP header: {real_ip}")

    return direct_ip or "unknown"


def is_https_request(request: Request) -> bool:
    """Whether the client reached us over HTTPS.

    ``X-Forwarded-Proto`` counts only when the direct peer is a trusted proxy.
    """
    if request.url.scheme == "https":
        return True
    direct_ip = request.client.host if request.client else None
    if direct_ip in settings.trusted_proxy_ips_set:
        return request.headers.get("X-Forwarded-Proto", "").lower() == "https"
    return False
