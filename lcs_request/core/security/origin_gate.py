"""
AJAX origin gate.

Runs before handler logic: checks that a request looks like an AJAX call,
that it comes from our own host (or that any origin is explicitly allowed),
sets the matching CORS headers and restricts methods. Failures come back as
Terminated results carrying the JSON error response.
"""

from html import escape
from typing import Callable, Dict
from urllib.parse import urlparse
import logging

from lcs_request.core.client_info import get_client_ip_address
from lcs_request.core.responses import Proceed, RequestResult, ResponseEmitter
from lcs_request.core.security.nonce_manager import NonceManager
from lcs_request.models.request_context import RequestContext

logger = logging.getLogger(__name__)

ALLOWED_METHODS = ("POST", "GET")
AJAX_CONTENT_TYPES = (
    "multipart/form-data",
    "application/json",
    "application/x-www-form-urlencoded",
)
XHR_MARKER = "xmlhttprequest"

CORS_ALLOW_HEADERS = "Origin, X-Requested-With, Content-Type, Accept"
CORS_ALLOW_METHODS = "POST, GET"


class OriginGate:
    def __init__(
        self,
        context: RequestContext,
        nonces: NonceManager,
        emitter: ResponseEmitter,
        payload_provider: Callable[[], RequestResult],
        response_headers: Dict[str, str],
    ):
        """
        Args:
            context: The request being checked
            nonces: Nonce manager for referer verification
            emitter: Builds the error responses
            payload_provider: Returns the decoded request payload as a result
            response_headers: Pending response headers, CORS headers go here
        """
        self.context = context
        self.nonces = nonces
        self.emitter = emitter
        self.payload_provider = payload_provider
        self.response_headers = response_headers

    def is_ajax_request(self) -> bool:
        """
        True for GET/POST requests that look like AJAX calls.

        An X-Requested-With header, when present, must say XMLHttpRequest.
        FormData, JSON and form posts are accepted by Content-Type; any other
        POST is accepted as a fallback.
        """
        method = self.context.method
        if method not in ALLOWED_METHODS:
            return False

        requested_with = self.context.header("x-requested-with")
        if requested_with is not None and requested_with.lower() != XHR_MARKER:
            return False

        content_type = self.context.content_type.lower()
        if any(accepted in content_type for accepted in AJAX_CONTENT_TYPES):
            return True

        return method == "POST"

    def is_allowed_origin(self) -> bool:
        """Origin host equals the server host or contains it"""
        origin = self.context.header("origin") or ""
        if not origin:
            return False

        origin_host = urlparse(origin).hostname
        server_host = urlparse(f"https://{self.context.host or ''}").hostname
        if not origin_host or not server_host:
            return False

        return origin_host == server_host or server_host in origin_host

    def secure_ajax_request(self, allow_global_origin: bool = False) -> RequestResult:
        """
        Gate a request on AJAX shape, origin and method.

        Returns Proceed when handling may continue, otherwise Terminated
        with a 403 (not AJAX), 405 (method) or 400 (origin) response.
        """
        client_ip = escape(get_client_ip_address(self.context))

        if not self.is_ajax_request():
            logger.warning(f"🚫 Non-AJAX request from {client_ip} to {self.context.uri}")
            return self.emitter.send_json_error(f"Unauthorized access from {client_ip}", 403)

        if allow_global_origin or self.is_allowed_origin():
            origin = self.context.header("origin") or ""
            self.response_headers["Access-Control-Allow-Origin"] = "*" if allow_global_origin else origin
            self.response_headers["Access-Control-Allow-Credentials"] = "true"
            self.response_headers["Access-Control-Allow-Headers"] = CORS_ALLOW_HEADERS
            self.response_headers["Access-Control-Allow-Methods"] = CORS_ALLOW_METHODS

            if self.context.method not in ALLOWED_METHODS:
                logger.error(f"AJAX error: Request method '{self.context.method}' not allowed.")
                return self.emitter.send_json_error("Unauthorized access.", 405)

            return Proceed()

        logger.warning(
            f"🚫 Rejected origin '{self.context.header('origin')}' from {client_ip} "
            f"(server host '{self.context.host}')"
        )
        return self.emitter.send_json_error(f"Bad or unauthorized request from {client_ip}", 400)

    def verify_ajax_referer(self, nonce_field: str = "nonce", action: str = "lcs_ajax_nonce") -> RequestResult:
        """Require a valid nonce for `action` in the request payload"""
        result = self.payload_provider()
        if result.is_terminated:
            return result

        payload = result.value
        if not payload:
            return self.emitter.send_json_error("Failed to retrieve request data.")

        token = payload.get(nonce_field)
        if token is None or not self.nonces.verify_nonce(token, action):
            logger.warning(f"🔒 Nonce check failed for '{action}' on {self.context.uri}")
            return self.emitter.send_json_error("Unauthorized action.")

        return Proceed(payload)
