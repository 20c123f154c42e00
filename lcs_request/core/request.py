# lcs_request/core/request.py
"""
LCSRequest - request utility facade.

Bundles URI helpers, request/session variable access, payload decoding with
nonce hooks, the AJAX origin gate, client metadata and JSON emission over one
explicit RequestContext and one SessionStore.
"""

from typing import Any, Callable, Dict, Optional, Union
from urllib.parse import parse_qsl, urlparse
import json
import logging
import re
import time

from lcs_request.core.client_info import get_client_ip_address, get_user_agent
from lcs_request.core.config import Settings, settings as default_settings
from lcs_request.core.error_policy import ErrorPolicy
from lcs_request.core.responses import Proceed, RequestResult, ResponseEmitter, Terminated
from lcs_request.core.security.nonce_manager import NonceManager
from lcs_request.core.security.origin_gate import OriginGate
from lcs_request.models.nonce_models import NONCES_KEY, NONCES_RESET_KEY
from lcs_request.models.request_context import FORM_CONTENT_TYPES, RequestContext
from lcs_request.services.session_store import SessionStore

logger = logging.getLogger(__name__)

RESERVED_SESSION_KEYS = (NONCES_KEY, NONCES_RESET_KEY)
URI_POSITIONS = ("start", "end")
FALSY_STRINGS = ("", "0", "false", "no", "off")

# Short header keys accepted by set_header()
HEADER_KEYS = {
    # CORS
    "allow_origin": "Access-Control-Allow-Origin",
    "allow_credentials": "Access-Control-Allow-Credentials",
    "allow_headers": "Access-Control-Allow-Headers",
    "allow_methods": "Access-Control-Allow-Methods",
    "ac_max_age": "Access-Control-Max-Age",
    "ac_expose_headers": "Access-Control-Expose-Headers",
    # Content
    "content_type": "Content-Type",
    "content_disposition": "Content-Disposition",
    "content_language": "Content-Language",
    # Caching
    "cache_control": "Cache-Control",
    "expires": "Expires",
    "pragma": "Pragma",
    "last_modified": "Last-Modified",
    "etag": "ETag",
    # Security
    "www_authenticate": "WWW-Authenticate",
    "strict_transport": "Strict-Transport-Security",
    "content_security": "Content-Security-Policy",
    "x_frame_options": "X-Frame-Options",
    "x_content_type": "X-Content-Type-Options",
    "referrer_policy": "Referrer-Policy",
    # Redirects
    "location": "Location",
    "refresh": "Refresh",
    "vary": "Vary",
}


def _is_truthy(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() not in FALSY_STRINGS
    return bool(value)


class LCSRequest:
    """
    Request utilities for one inbound request.

    Programmer errors (unknown header keys, bad URI positions, unsetting
    missing variables) go through the ErrorPolicy: silently ignored by
    default, raised as RequestConfigurationError when the policy is RAISING.
    """

    def __init__(
        self,
        context: RequestContext,
        session: SessionStore,
        error_policy: Optional[ErrorPolicy] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.context = context
        self.session = session
        self.settings = settings or default_settings
        self.error_policy = error_policy or ErrorPolicy.from_flag(self.settings.THROW_ERRORS)

        self.response_headers: Dict[str, str] = {}
        self.emitter = ResponseEmitter(headers=self.response_headers)
        self.nonces = NonceManager(
            session,
            clock=clock,
            default_ttl=self.settings.NONCE_TTL,
            default_length=self.settings.NONCE_LENGTH,
            max_reset_trials=self.settings.NONCE_RESET_MAX_TRIALS,
            reset_window=self.settings.NONCE_RESET_WINDOW,
        )
        self.gate = OriginGate(
            context,
            self.nonces,
            self.emitter,
            payload_provider=self.get_request_data,
            response_headers=self.response_headers,
        )

        self._request_vars: Dict[str, Any] = {**context.query, **context.form}
        self._nonce_verified = False

    # URI

    def get_uri(self, strip_query_args: bool = False) -> str:
        uri = self.context.uri or "/"
        if strip_query_args:
            uri = uri.split("?", 1)[0]
        return uri

    def get_uri_path_name(self, position: Union[int, str] = 0, strip_query_args: bool = False) -> Optional[str]:
        """
        One segment of the URI path.

        Example for "/products/item/view?id=123":
            get_uri_path_name(1)          -> "item"
            get_uri_path_name("start")    -> "products"
            get_uri_path_name("end")      -> "view?id=123"
            get_uri_path_name(2, True)    -> "view"

        Returns None when the segment does not exist or the position is invalid.
        """
        is_numeric = isinstance(position, int) and not isinstance(position, bool)
        if isinstance(position, str) and position.lstrip("-").isdigit():
            position, is_numeric = int(position), True

        if not is_numeric and position not in URI_POSITIONS:
            self.error_policy.report(
                f"Invalid position value. Must be numeric or one of: {', '.join(URI_POSITIONS)}",
                argument="position",
                value=position,
            )
            return None

        segments = self.get_uri(strip_query_args).strip("/").split("/")

        if position == "start":
            index = 0
        elif position == "end":
            index = len(segments) - 1
        else:
            index = position

        if index < 0 or index >= len(segments):
            return None
        return segments[index]

    # Request variables

    def set_request_var(self, key: str, value: Any) -> None:
        self._request_vars[key] = value

    def get_request_var(self, key: str) -> Any:
        return self._request_vars.get(key)

    def unset_request_var(self, key: str) -> None:
        if key not in self._request_vars:
            self.error_policy.report(f"Request variable '{key}' is not set.", argument="key", value=key)
            return
        del self._request_vars[key]

    # Session variables

    def start_session(self) -> bool:
        return self.session.start()

    def stop_session(self) -> None:
        self.session.stop()

    def set_session_var(self, key: str, value: Any) -> None:
        if key in RESERVED_SESSION_KEYS:
            self.error_policy.report(f"Session key '{key}' is reserved for nonces.", argument="key", value=key)
            return
        self.session.set(key, value)

    def get_session_var(self, key: str) -> Any:
        return self.session.get(key)

    def unset_session_var(self, key: str) -> None:
        if key in RESERVED_SESSION_KEYS:
            self.error_policy.report(f"Session key '{key}' is reserved for nonces.", argument="key", value=key)
            return
        if not self.session.delete(key):
            self.error_policy.report(f"Session variable '{key}' is not set.", argument="key", value=key)

    # Payload

    def _decode_payload(self) -> Optional[Dict[str, Any]]:
        data: Dict[str, Any] = dict(self.context.query)
        content_type = self.context.content_type.lower()

        if content_type.startswith("application/json"):
            if self.context.body:
                try:
                    decoded = json.loads(self.context.body)
                except ValueError as e:
                    logger.warning(f"Malformed JSON body on {self.context.uri}: {e}")
                    return None
                if not isinstance(decoded, dict):
                    logger.warning(f"JSON body on {self.context.uri} is not an object")
                    return None
                data.update(decoded)
        elif content_type.startswith(FORM_CONTENT_TYPES):
            data.update(self.context.form)
        elif self.context.body:
            raw = self.context.body.decode("utf-8", errors="replace")
            data.update(parse_qsl(raw, keep_blank_values=True))

        return data

    def get_request_data(self) -> RequestResult:
        """
        Decode query + body into one mapping and apply the nonce hooks.

        - isNonceRetrieval: answer with a nonce for `nonce_name` (terminates)
        - secure: require `nonce` to verify against `nonce_name`, once per request

        Returns Proceed(dict), Proceed(None) for a malformed body or a
        non-string nonce_name, or
        Terminated when a nonce hook answered the request.
        """
        data = self._decode_payload()
        if data is None:
            return Proceed(None)

        nonce_name = data.get("nonce_name") or self.settings.DEFAULT_NONCE_NAME
        if not isinstance(nonce_name, str):
            logger.warning(f"Non-string nonce_name on {self.context.uri}")
            return Proceed(None)

        if _is_truthy(data.get("isNonceRetrieval", False)):
            return self.emitter.send_json_success(self.create_nonce(nonce_name))

        if _is_truthy(data.get("secure", False)) and not self._nonce_verified:
            if not self.verify_nonce(data.get("nonce", ""), nonce_name):
                return self.emitter.send_json_error("Unauthorized action.")
            self._nonce_verified = True

        return Proceed(data)

    # Nonces

    def create_nonce(self, action: str, ttl: Optional[int] = None, length: Optional[int] = None) -> str:
        return self.nonces.create_nonce(action, ttl, length)

    def verify_nonce(self, token: str, action: str, single_use: bool = True) -> bool:
        return self.nonces.verify_nonce(token, action, single_use)

    def fair_reset_nonce(self, action: str) -> None:
        self.nonces.fair_reset_nonce(action)

    # AJAX gate

    def is_ajax_request(self) -> bool:
        return self.gate.is_ajax_request()

    def secure_ajax_request(self, allow_global_origin: bool = False) -> RequestResult:
        return self.gate.secure_ajax_request(allow_global_origin)

    def verify_ajax_referer(self, nonce_field: str = "nonce", action: Optional[str] = None) -> RequestResult:
        return self.gate.verify_ajax_referer(nonce_field, action or self.settings.AJAX_NONCE_ACTION)

    # Responses

    def send_json_response(self, data: Any, status_code: int = 200) -> Terminated:
        return self.emitter.send_json_response(data, status_code)

    def send_json_success(self, data: Any = None, status_code: int = 200) -> Terminated:
        return self.emitter.send_json_success(data, status_code)

    def send_json_error(self, error_message: Any = "An error occurred", status_code: int = 400) -> Terminated:
        return self.emitter.send_json_error(error_message, status_code)

    def set_header(self, header: str, value: Any, replace: bool = True) -> None:
        """Queue a response header by short key (see HEADER_KEYS)"""
        name = HEADER_KEYS.get(header)
        if name is None:
            self.error_policy.report(f"Invalid header type: {header}", argument="header", value=header)
            return

        value = str(value)
        if not replace and name in self.response_headers:
            value = f"{self.response_headers[name]}, {value}"
        self.response_headers[name] = value

    # Client metadata

    def get_client_ip_address(self) -> str:
        return get_client_ip_address(self.context)

    def get_user_agent(self) -> Dict[str, str]:
        return get_user_agent(self.context)

    def get_url(self, include_protocol: bool = False, isolate_ajax_effects: bool = True) -> str:
        """
        The current URL.

        For AJAX calls the request URI is the endpoint, not the page; with
        isolate_ajax_effects the Referer is used instead when present.
        """
        url = f"{self.get_domain(include_protocol=True)}{self.context.uri or '/'}"

        referer = self.context.header("referer")
        if isolate_ajax_effects and referer and self.is_ajax_request():
            url = referer

        if not include_protocol:
            url = re.sub(r"^https?://", "", url, flags=re.IGNORECASE)

        return url.strip()

    def get_url_query_arg(self, url: Optional[str] = None) -> Optional[str]:
        if url is None:
            url = self.get_url(include_protocol=True)
        return urlparse(url).query or None

    def get_domain(self, include_protocol: bool = False) -> str:
        host = self.context.host or "localhost"
        if include_protocol:
            protocol = "https://" if self.context.https else "http://"
            return f"{protocol}{host}".strip()
        return host.strip()

    def get_host(self, include_protocol: bool = False) -> str:
        return self.get_domain(include_protocol)
