"""
Session middleware.

Resolves the session cookie to a SessionStore, exposes it as
`request.state.session` and persists it once the response is ready.
"""

from fastapi import Request, Response
from starlette.concurrency import run_in_threadpool
from typing import Callable
import logging
import re

from lcs_request.services.session_store import SessionBackend, new_session_id

logger = logging.getLogger(__name__)

SESSION_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{32,128}$")


class SessionStoreMiddleware:
    """Cookie-identified sessions backed by a SessionBackend"""

    def __init__(
        self,
        backend: SessionBackend,
        cookie_name: str = "lcs_session",
        max_age: int = 86400,
    ):
        self.backend = backend
        self.cookie_name = cookie_name
        self.max_age = max_age

    def _resolve_session_id(self, request: Request) -> str:
        session_id = request.cookies.get(self.cookie_name)
        if session_id and SESSION_ID_PATTERN.match(session_id):
            return session_id
        if session_id:
            logger.warning("🍪 Ignoring malformed session cookie")
        return new_session_id()

    async def __call__(self, request: Request, call_next: Callable) -> Response:
        session = self.backend.open(self._resolve_session_id(request))
        request.state.session = session

        response = await call_next(request)

        # Only sessions that were actually used get persisted and a cookie
        if session.is_active:
            await run_in_threadpool(session.stop)
            response.set_cookie(
                self.cookie_name,
                session.session_id,
                max_age=self.max_age,
                httponly=True,
                samesite="lax",
                secure=request.url.scheme == "https",
            )

        return response
