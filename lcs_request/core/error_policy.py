# lcs_request/core/error_policy.py
"""
Error policy for programmer errors.

A component receives an ErrorPolicy at construction and consults it at every
site where calling code can pass something invalid. SILENT logs and carries on,
RAISING turns the problem into a RequestConfigurationError.
"""

from enum import Enum
from typing import Any, Optional
import logging

from lcs_request.core.exceptions import RequestConfigurationError

logger = logging.getLogger(__name__)


class ErrorPolicy(str, Enum):
    SILENT = "silent"
    RAISING = "raising"

    @classmethod
    def from_flag(cls, throw_errors: bool) -> "ErrorPolicy":
        return cls.RAISING if throw_errors else cls.SILENT

    @property
    def raises(self) -> bool:
        return self is ErrorPolicy.RAISING

    def report(self, message: str, argument: Optional[str] = None, value: Any = None) -> None:
        """Raise in RAISING mode, otherwise log and return"""
        if self.raises:
            raise RequestConfigurationError(message, argument=argument, value=value)
        logger.debug(f"Ignored request error: {message}")
