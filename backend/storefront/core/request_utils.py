"""Request helpers shared by the API routers."""

import ipaddress
import logging

from fastapi import Request

logger = logging.getLogger(__name__)

_LOCAL_PROXIES = ("127.0.0.1", "::1", "localhost")


def _is_valid_ip(ip_str: str) -> bool:
    """Check if a string is a valid IP address."""
    try:
        ipaddress.ip_address(ip_str)
        return True
    except ValueError:
        return False


def get_client_ip(request: Request) -> str:
    """Get the client IP address for a request.

    X-Real-IP is honoured only when the direct peer is a local reverse
    proxy. X-Forwarded-For is never trusted since clients can set it.
    Falls back to "unknown" when the transport gives no peer address.
    """
    peer = request.client.host if request.client else None

    if peer in _LOCAL_PROXIES:
        real_ip = request.headers.get("X-Real-IP", "").strip()
        if real_ip:
            if _is_valid_ip(real_ip):
                return real_ip
            logger.warning(f"Invalid X-Real-IP: {real_ip}")

    return peer or "unknown"


def get_bearer_token(request: Request) -> str | None:
    """Extract the token from an ``Authorization: Bearer <token>`` header."""
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    token = auth_header[7:].strip()
    return token or None
