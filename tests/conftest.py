# tests/conftest.py
"""
Shared fixtures for request layer tests.

Provides a controllable clock, in-memory session stores and a factory for
hand-built request contexts.
"""

import pytest
from typing import Any, Dict, Optional

from lcs_request.core.error_policy import ErrorPolicy
from lcs_request.core.request import LCSRequest
from lcs_request.models.request_context import RequestContext
from lcs_request.services.session_store import InMemorySessionStore


class FakeClock:
    """Deterministic replacement for time.time"""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def session():
    return InMemorySessionStore()


@pytest.fixture
def make_context():
    """Factory for RequestContext with sensible AJAX defaults"""
    def _make(
        method: str = "POST",
        uri: str = "/ajax",
        headers: Optional[Dict[str, str]] = None,
        body: bytes = b"",
        query: Optional[Dict[str, Any]] = None,
        form: Optional[Dict[str, Any]] = None,
        client_host: Optional[str] = "203.0.113.7",
        https: bool = False,
    ) -> RequestContext:
        base_headers = {"Host": "example.com"}
        base_headers.update(headers or {})
        return RequestContext(
            method=method,
            uri=uri,
            headers=base_headers,
            body=body,
            query=query or {},
            form=form or {},
            client_host=client_host,
            https=https,
        )
    return _make


@pytest.fixture
def make_request(make_context, session, clock):
    """Factory for LCSRequest sharing the test's session and clock"""
    def _make(policy: ErrorPolicy = ErrorPolicy.SILENT, **context_kwargs) -> LCSRequest:
        return LCSRequest(
            make_context(**context_kwargs),
            session,
            error_policy=policy,
            clock=clock,
        )
    return _make
