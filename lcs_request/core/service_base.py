# lcs_request/core/service_base.py
"""
Lifecycle base for infrastructure services backing the request layer.

A service owns one client object. It is created lazily by initialize(),
reported on by health_check() and released by shutdown(). Everything is
synchronous, matching the request layer itself.
"""
from abc import ABC, abstractmethod
from typing import Optional, Dict, Any, TypeVar, Generic
import logging

from lcs_request.core.exceptions import ServiceError, ConfigurationError

ConfigType = TypeVar('ConfigType')


class ServiceConfig:
    """Marker base for service configuration dataclasses"""
    pass


def health_report(healthy: bool, status: str, **details: Any) -> Dict[str, Any]:
    """Uniform health payload: {healthy, status, details}"""
    return {"healthy": healthy, "status": status, "details": details}


class BaseService(ABC, Generic[ConfigType]):
    """
    Service with a lazily created client.

    Subclasses implement _initialize_client() and health_check(); they may
    return None from _initialize_client() to run in a disabled mode.
    """

    def __init__(self, config: Optional[ConfigType] = None, logger: Optional[logging.Logger] = None):
        self.config = config
        self.service_name = type(self).__name__
        self.logger = logger or logging.getLogger(self.service_name)
        self._client = None
        self._initialized = False

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @abstractmethod
    def _initialize_client(self) -> Any:
        pass

    @abstractmethod
    def health_check(self) -> Dict[str, Any]:
        pass

    def _validate_config(self) -> None:
        if self.config is None:
            self.logger.debug(f"{self.service_name} has no configuration")

    def _cleanup(self) -> None:
        pass

    def initialize(self) -> None:
        """Create the client; safe to call repeatedly"""
        if self._initialized:
            return

        self.logger.info(f"🔌 Starting {self.service_name}")
        try:
            self._validate_config()
            self._client = self._initialize_client()
        except ConfigurationError:
            raise
        except Exception as e:
            self.logger.error(f"{self.service_name} failed to start", exc_info=True)
            raise ServiceError(
                f"Failed to initialize {self.service_name}",
                service_name=self.service_name,
                operation="initialize",
                details={'original_error': str(e), 'error_type': type(e).__name__}
            ) from e

        self._initialized = True

    def shutdown(self) -> None:
        """Release the client; errors are logged, never raised"""
        if not self._initialized:
            return

        try:
            self._cleanup()
        except Exception:
            self.logger.error(f"{self.service_name} did not shut down cleanly", exc_info=True)
        finally:
            self._client = None
            self._initialized = False
        self.logger.info(f"🔌 {self.service_name} stopped")
