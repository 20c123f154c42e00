# lcs_request/services/session_store.py
"""
Session stores scoped to a single client session.

A SessionStore is a small key-value mapping with an explicit start/stop
lifecycle. Nonce handling starts it lazily; whoever owns the request (the
session middleware, a test) stops it. Backends decide where session data
lives between requests: process memory or Redis.
"""

from abc import ABC, abstractmethod
from copy import deepcopy
from typing import Any, Dict, Optional
import logging
import secrets

from lcs_request.core.service_base import health_report
from lcs_request.services.redis_service import RedisService
from lcs_request.core.exceptions import session_store_error

logger = logging.getLogger(__name__)


def new_session_id() -> str:
    return secrets.token_urlsafe(32)


class SessionStore(ABC):
    """Key-value store for one client session"""

    def __init__(self, session_id: Optional[str] = None):
        self.session_id = session_id or new_session_id()
        self._data: Dict[str, Any] = {}
        self._active = False

    @property
    def is_active(self) -> bool:
        return self._active

    def start(self) -> bool:
        """Start the session if it is not already active"""
        if self._active:
            return True
        self._data = self._load()
        self._active = True
        logger.debug(f"Session {self.session_id[:8]}... started")
        return True

    def stop(self) -> None:
        """Persist and close the session; a no-op when not active"""
        if not self._active:
            return
        self._persist(self._data)
        self._active = False
        logger.debug(f"Session {self.session_id[:8]}... stopped")

    def get(self, key: str, default: Any = None) -> Any:
        self.start()
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self.start()
        self._data[key] = value

    def delete(self, key: str) -> bool:
        """Remove a key, returns False when it was not set"""
        self.start()
        if key not in self._data:
            return False
        del self._data[key]
        return True

    def __contains__(self, key: str) -> bool:
        self.start()
        return key in self._data

    def to_dict(self) -> Dict[str, Any]:
        self.start()
        return deepcopy(self._data)

    @abstractmethod
    def _load(self) -> Dict[str, Any]:
        pass

    @abstractmethod
    def _persist(self, data: Dict[str, Any]) -> None:
        pass


class InMemorySessionStore(SessionStore):
    """
    Standalone store living only as long as the object.

    Handy for tests and for one-off scripts that need nonce handling
    without a backend.
    """

    def __init__(self, data: Optional[Dict[str, Any]] = None, session_id: Optional[str] = None):
        super().__init__(session_id)
        self._initial = data if data is not None else {}

    def _load(self) -> Dict[str, Any]:
        return self._initial

    def _persist(self, data: Dict[str, Any]) -> None:
        self._initial = data


class SessionBackend(ABC):
    """Where session data lives between requests"""

    @abstractmethod
    def load(self, session_id: str) -> Dict[str, Any]:
        pass

    @abstractmethod
    def save(self, session_id: str, data: Dict[str, Any]) -> None:
        pass

    @abstractmethod
    def destroy(self, session_id: str) -> None:
        pass

    def health_check(self) -> Dict[str, Any]:
        return health_report(True, "ok", backend=type(self).__name__)

    def open(self, session_id: Optional[str] = None) -> "BackendSessionStore":
        return BackendSessionStore(self, session_id)


class BackendSessionStore(SessionStore):
    """Store that loads from and writes back to a SessionBackend"""

    def __init__(self, backend: SessionBackend, session_id: Optional[str] = None):
        super().__init__(session_id)
        if backend is None:
            raise session_store_error("BackendSessionStore needs a backend", self.session_id)
        self.backend = backend

    def _load(self) -> Dict[str, Any]:
        return self.backend.load(self.session_id)

    def _persist(self, data: Dict[str, Any]) -> None:
        self.backend.save(self.session_id, data)


class InMemorySessionBackend(SessionBackend):
    """Process-local backend; data is copied so callers never share references"""

    def __init__(self):
        self._sessions: Dict[str, Dict[str, Any]] = {}

    def load(self, session_id: str) -> Dict[str, Any]:
        return deepcopy(self._sessions.get(session_id, {}))

    def save(self, session_id: str, data: Dict[str, Any]) -> None:
        self._sessions[session_id] = deepcopy(data)

    def destroy(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)

    def health_check(self) -> Dict[str, Any]:
        return health_report(True, "memory", active_sessions=len(self._sessions))


class RedisSessionBackend(SessionBackend):
    """Sessions stored as JSON blobs under a key prefix with a sliding TTL"""

    def __init__(self, redis_service: RedisService, ttl: int = 86400, prefix: str = "lcs:session:"):
        self.redis = redis_service
        self.ttl = ttl
        self.prefix = prefix

    def _key(self, session_id: str) -> str:
        return f"{self.prefix}{session_id}"

    def load(self, session_id: str) -> Dict[str, Any]:
        data = self.redis.get(self._key(session_id), default={})
        if not isinstance(data, dict):
            logger.warning(f"Discarding malformed session data for {session_id[:8]}...")
            return {}
        return data

    def save(self, session_id: str, data: Dict[str, Any]) -> None:
        if not self.redis.set(self._key(session_id), data, ttl=self.ttl):
            logger.warning(f"Session {session_id[:8]}... could not be persisted to Redis")

    def destroy(self, session_id: str) -> None:
        self.redis.delete(self._key(session_id))

    def health_check(self) -> Dict[str, Any]:
        return self.redis.health_check()
