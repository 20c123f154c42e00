"""Request/response utility layer: nonces, AJAX origin gate, JSON responses."""

from lcs_request.core.request import LCSRequest
from lcs_request.core.error_policy import ErrorPolicy
from lcs_request.core.responses import Proceed, Terminated
from lcs_request.models.request_context import RequestContext

__version__ = "1.0.0"

__all__ = [
    "LCSRequest",
    "ErrorPolicy",
    "Proceed",
    "Terminated",
    "RequestContext",
]
