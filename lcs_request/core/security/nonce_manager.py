"""
Session-backed nonces.

Nonces bind a client action to a server-issued random token. They live in the
session under a reserved key, are reused while unexpired, consumed on
single-use verification and dropped when found expired. A separate per-action
record rate-limits forced regeneration ("fair reset").

All checks return booleans or tokens; deciding whether a failed check ends
the request is up to the caller.
"""

from typing import Callable, Dict, Optional
import logging
import secrets
import time

from lcs_request.models.nonce_models import (
    NONCES_KEY,
    NONCES_RESET_KEY,
    NonceRecord,
    ResetRecord,
)
from lcs_request.services.session_store import SessionStore

logger = logging.getLogger(__name__)

DEFAULT_TTL = 3600
DEFAULT_LENGTH = 32
MAX_RESET_TRIALS = 3
RESET_WINDOW = 86400  # 24 hours


class NonceManager:
    """Creates, verifies and fair-resets nonces inside a SessionStore"""

    def __init__(
        self,
        session: SessionStore,
        clock: Callable[[], float] = time.time,
        default_ttl: int = DEFAULT_TTL,
        default_length: int = DEFAULT_LENGTH,
        max_reset_trials: int = MAX_RESET_TRIALS,
        reset_window: int = RESET_WINDOW,
    ):
        self.session = session
        self.clock = clock
        self.default_ttl = default_ttl
        self.default_length = default_length
        self.max_reset_trials = max_reset_trials
        self.reset_window = reset_window

    # Storage helpers

    def _nonces(self) -> Dict[str, dict]:
        self.session.start()
        nonces = self.session.get(NONCES_KEY)
        return nonces if isinstance(nonces, dict) else {}

    def _save_nonces(self, nonces: Dict[str, dict]) -> None:
        self.session.set(NONCES_KEY, nonces)

    def _reset_data(self) -> Dict[str, dict]:
        self.session.start()
        data = self.session.get(NONCES_RESET_KEY)
        return data if isinstance(data, dict) else {}

    def _save_reset_record(self, action: str, record: ResetRecord) -> None:
        data = self._reset_data()
        data[action] = record.model_dump()
        self.session.set(NONCES_RESET_KEY, data)

    # Public API

    def create_nonce(self, action: str, ttl: Optional[int] = None, length: Optional[int] = None) -> str:
        """
        Return the live nonce for an action, or issue a new one.

        Args:
            action: The action the nonce is tied to (e.g. 'delete_post')
            ttl: Time to live in seconds
            length: Random bytes before hex encoding

        Returns:
            Hex token, 2 * length characters long
        """
        ttl = self.default_ttl if ttl is None else ttl
        length = self.default_length if length is None else length

        now = self.clock()
        nonces = self._nonces()

        for token, data in nonces.items():
            record = NonceRecord.model_validate(data)
            if record.action == action and not record.is_expired(now):
                return token

        token = secrets.token_bytes(length).hex()
        nonces[token] = NonceRecord(action=action, expires_at=now + ttl).model_dump()
        self._save_nonces(nonces)

        logger.debug(f"🔑 Issued nonce {token[:8]}... for '{action}' (ttl={ttl}s)")
        return token

    def verify_nonce(self, token: str, action: str, single_use: bool = True) -> bool:
        """
        Check a nonce against an action.

        Fails without side effects on unknown tokens and action mismatches.
        An expired record is removed. A valid single-use nonce is consumed.
        """
        if not isinstance(token, str) or not token:
            return False

        nonces = self._nonces()
        data = nonces.get(token)
        if data is None:
            logger.debug(f"Nonce {token[:8]}... not found")
            return False

        record = NonceRecord.model_validate(data)
        if record.action != action:
            logger.warning(f"🔒 Nonce {token[:8]}... presented for '{action}' but bound to '{record.action}'")
            return False

        if record.is_expired(self.clock()):
            del nonces[token]
            self._save_nonces(nonces)
            logger.info(f"⏰ Nonce {token[:8]}... for '{action}' expired")
            return False

        if single_use:
            del nonces[token]
            self._save_nonces(nonces)

        return True

    def delete_nonces_for_action(self, action: str) -> int:
        """Drop every nonce bound to an action, returns how many were removed"""
        nonces = self._nonces()
        stale = [token for token, data in nonces.items() if data.get("action") == action]
        if not stale:
            return 0

        for token in stale:
            del nonces[token]
        self._save_nonces(nonces)
        return len(stale)

    def get_reset_record(self, action: str) -> Optional[ResetRecord]:
        data = self._reset_data().get(action)
        if data is None:
            return None
        return ResetRecord.model_validate(data)

    def fair_reset_nonce(self, action: str) -> None:
        """
        Force a fresh nonce for an action, a bounded number of times per window.

        - First call for an action starts tracking and rotates the nonce.
        - Up to max_reset_trials calls rotate the nonce and count up.
        - Past the limit, once the window has elapsed the counter rolls back
          to 1 and the stale nonce is dropped. No new nonce is issued on
          that call; the next create_nonce() issues one.
        - Past the limit inside the window the call is ignored.
        """
        now = self.clock()
        record = self.get_reset_record(action)

        if record is None:
            self._save_reset_record(action, ResetRecord(last_reset=now, trial_count=1))
            self.delete_nonces_for_action(action)
            self.create_nonce(action)
            logger.info(f"🔄 Fair reset started for '{action}'")
            return

        trials = record.trial_count + 1

        if trials <= self.max_reset_trials:
            self.delete_nonces_for_action(action)
            self.create_nonce(action)
            record.trial_count = trials
            self._save_reset_record(action, record)
            logger.info(f"🔄 Fair reset {trials}/{self.max_reset_trials} for '{action}'")
            return

        if now - record.last_reset >= self.reset_window:
            self._save_reset_record(action, ResetRecord(last_reset=now, trial_count=1))
            self.delete_nonces_for_action(action)
            logger.info(f"🔄 Fair reset window rolled over for '{action}'")
            return

        logger.warning(f"🚦 Fair reset denied for '{action}' - limit of {self.max_reset_trials} reached")
