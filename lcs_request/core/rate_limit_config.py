"""
Rate limiting for the request layer API
"""

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address
import ipaddress

from lcs_request.core.client_info import CLIENT_IP_HEADERS
from lcs_request.core.config import settings


def get_real_ip(request: Request) -> str:
    """
    Rate limit key: the client address behind any proxies.

    Uses the same proxy headers as client detection in the request layer;
    values that do not parse as an IP address are skipped so a forged
    header cannot mint fresh buckets.
    """
    for name in CLIENT_IP_HEADERS:
        value = request.headers.get(name)
        if not value:
            continue
        candidate = value.split(",")[0].strip()
        try:
            ipaddress.ip_address(candidate)
        except ValueError:
            continue
        return candidate

    return get_remote_address(request)


# Per-endpoint limits
RATE_LIMITS = {
    "ajax": settings.RATE_LIMIT_NONCE,
    "nonce_reset": settings.RATE_LIMIT_NONCE_RESET,
}

RATE_LIMIT_MESSAGE = "Too many requests. Please wait a moment and try again."


def create_limiter() -> Limiter:
    return Limiter(key_func=get_real_ip)
