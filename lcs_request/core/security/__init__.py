"""
Security layer for the request utilities.

- Session-backed nonces with fair reset (NonceManager)
- AJAX origin / method gate with CORS headers (OriginGate)

Both sit on top of an explicit RequestContext and an injected SessionStore;
neither touches global request state.
"""

from .nonce_manager import NonceManager
from .origin_gate import OriginGate

__all__ = [
    'NonceManager',
    'OriginGate',
]
