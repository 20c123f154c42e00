"""
Security middleware for the request layer API
Adds security headers and flags slow requests
"""

from fastapi import Request, Response
import time
import logging
from typing import Callable

logger = logging.getLogger(__name__)

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}


class SecurityMiddleware:
    """Security headers on every response"""

    def __init__(self, slow_request_threshold: float = 1.0):
        self.slow_request_threshold = slow_request_threshold

    async def __call__(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()
        response = await call_next(request)
        process_time = time.time() - start_time

        for name, value in SECURITY_HEADERS.items():
            response.headers[name] = value
        response.headers["X-Process-Time"] = f"{process_time:.4f}"

        if "server" in response.headers:
            del response.headers["server"]

        if process_time > self.slow_request_threshold:
            logger.warning(f"⏱️ Slow request: {request.url.path} took {process_time:.2f}s")

        return response
