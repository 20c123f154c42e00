# lcs_request/core/responses.py
"""
JSON response emission.

Every short-circuit in the request layer produces a Terminated result holding
the finished response. Callers check `is_terminated` and return the response
instead of continuing; nothing here ends the process.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union
import json
import logging

from fastapi import Response

logger = logging.getLogger(__name__)

ENCODING_ERROR_PAYLOAD = {"success": False, "error": "JSON encoding error"}


@dataclass
class Proceed:
    """The request may continue; `value` carries whatever the step produced"""
    value: Any = None

    @property
    def is_terminated(self) -> bool:
        return False


@dataclass
class Terminated:
    """The request is finished; return `response` to the client"""
    response: Response

    @property
    def is_terminated(self) -> bool:
        return True

    @property
    def status_code(self) -> int:
        return self.response.status_code

    def json(self) -> Any:
        return json.loads(self.response.body)


RequestResult = Union[Proceed, Terminated]


@dataclass
class ResponseEmitter:
    """
    Builds `{success, data}` JSON responses.

    `headers` is shared with the owner of the emitter so headers set earlier
    in the request (CORS, custom) end up on every emitted response.
    """
    headers: Dict[str, str] = field(default_factory=dict)

    def send_json_response(
        self,
        data: Any,
        status_code: int = 200,
        headers: Optional[Dict[str, str]] = None
    ) -> Terminated:
        try:
            body = json.dumps(data, allow_nan=False)
        except (TypeError, ValueError) as e:
            logger.error(f"JSON encoding error: {e}")
            body = json.dumps(ENCODING_ERROR_PAYLOAD)
            status_code = 500

        response = Response(content=body, status_code=status_code, media_type="application/json")
        for name, value in {**self.headers, **(headers or {})}.items():
            response.headers[name] = value
        return Terminated(response)

    def send_json_success(self, data: Any = None, status_code: int = 200) -> Terminated:
        return self.send_json_response({"success": True, "data": data}, status_code)

    def send_json_error(self, error_message: Any = "An error occurred", status_code: int = 400) -> Terminated:
        logger.debug(f"Sending error {status_code}: {error_message}")
        return self.send_json_response({"success": False, "data": error_message}, status_code)
