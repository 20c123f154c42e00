# lcs_request/core/exceptions.py
"""
Exceptions for the request layer.

Failed validations (bad nonce, foreign origin, non-AJAX call) are not
exceptions; they end in a JSON error response. What is raised here are
programmer errors in raising mode, bad configuration and broken
infrastructure.
"""

from typing import Optional, Dict, Any


class LCSBaseException(Exception):
    """Root of the request layer's exceptions; carries a details dict"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if not self.details:
            return self.message
        return f"{self.message} | Details: {self.details}"


class RequestConfigurationError(LCSBaseException):
    """
    Calling code passed something invalid.

    Raised only under ErrorPolicy.RAISING: unknown header keys, bad URI
    segment positions, unsetting variables that were never set, touching
    the reserved nonce session keys.
    """

    def __init__(self, message: str, argument: Optional[str] = None, value: Any = None,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.argument = argument
        self.value = value
        if argument:
            self.details['argument'] = argument
        if value is not None:
            self.details['value'] = str(value)


class ServiceError(LCSBaseException):
    """An infrastructure service (Redis) could not do its job"""

    def __init__(self, message: str, service_name: Optional[str] = None, operation: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.service_name = service_name
        self.operation = operation
        for key, value in (('service', service_name), ('operation', operation)):
            if value:
                self.details[key] = value


class ConfigurationError(LCSBaseException):
    """Settings that cannot work"""

    def __init__(self, message: str, component: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.component = component
        if component:
            self.details['component'] = component


class SessionStoreError(LCSBaseException):
    """A session store was wired up or used incorrectly"""

    def __init__(self, message: str, session_id: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.session_id = session_id
        if session_id:
            # Session ids are credentials, only a prefix goes into details
            self.details['session_id'] = f"{session_id[:8]}..."


def config_error(message: str, component: str) -> ConfigurationError:
    return ConfigurationError(message, component=component)


def session_store_error(message: str, session_id: str = None) -> SessionStoreError:
    return SessionStoreError(message, session_id=session_id)
