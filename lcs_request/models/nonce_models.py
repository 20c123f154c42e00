# lcs_request/models/nonce_models.py

from pydantic import BaseModel, Field

# Reserved session keys, owned by NonceManager
NONCES_KEY = "nonces"
NONCES_RESET_KEY = "NONCES_RESET_DATA"


class NonceRecord(BaseModel):
    """A nonce bound to one action; stored in the session under its token"""
    action: str
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return self.expires_at <= now


class ResetRecord(BaseModel):
    """
    Fair-reset bookkeeping for one action.

    trial_count only grows inside the window that starts at last_reset and
    drops back to 1 when the window rolls over.
    """
    last_reset: float
    trial_count: int = Field(default=1, ge=1)
