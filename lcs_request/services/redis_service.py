# lcs_request/services/redis_service.py
"""
Redis access for session persistence.

Values are stored as JSON. Connection trouble never reaches the caller:
reads fall back to their default, writes report False, and the service
keeps answering so a Redis outage only costs session state.
"""
import json
import redis
from typing import Optional, Dict, Any
from dataclasses import dataclass
import logging

from lcs_request.core.exceptions import config_error
from lcs_request.core.service_base import BaseService, ServiceConfig, health_report

logger = logging.getLogger(__name__)

REDIS_SCHEMES = ("redis://", "rediss://", "unix://")


@dataclass
class RedisConfig(ServiceConfig):
    url: Optional[str] = None
    decode_responses: bool = True
    socket_timeout: float = 5.0
    max_connections: int = 10
    retry_on_timeout: bool = True
    health_check_interval: int = 30


class RedisService(BaseService[RedisConfig]):
    """Thin JSON-aware wrapper around a redis-py client"""

    def __init__(self, config: Optional[RedisConfig] = None):
        super().__init__(config or RedisConfig(), logger)

    def _validate_config(self) -> None:
        super()._validate_config()
        if not self.config.url:
            logger.warning("⚠️ No Redis URL configured, Redis stays disabled")
        elif not self.config.url.startswith(REDIS_SCHEMES):
            raise config_error(f"Unsupported Redis URL scheme: {self.config.url.split(':')[0]}", "redis")

    def _initialize_client(self) -> Optional[redis.Redis]:
        if not self.config.url:
            return None

        client = redis.from_url(
            self.config.url,
            decode_responses=self.config.decode_responses,
            socket_timeout=self.config.socket_timeout,
            max_connections=self.config.max_connections,
            retry_on_timeout=self.config.retry_on_timeout,
            health_check_interval=self.config.health_check_interval
        )
        try:
            client.ping()
        except Exception as e:
            logger.error(f"❌ Redis unreachable, continuing without it: {e}")
            return None

        logger.info("✅ Redis connected")
        return client

    def is_connected(self) -> bool:
        return self._client is not None

    def get(self, key: str, default: Any = None, deserialize_json: bool = True) -> Any:
        """Stored value for `key`, JSON-decoded when possible, else `default`"""
        if self._client is None:
            return default

        try:
            raw = self._client.get(key)
        except Exception as e:
            logger.warning(f"Redis GET {key} failed: {e}")
            return default

        if raw is None:
            return default
        if not (deserialize_json and isinstance(raw, str)):
            return raw
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            return raw

    def set(self, key: str, value: Any, ttl: Optional[int] = None, serialize_json: bool = True) -> bool:
        """Store `value`, with expiry when `ttl` is given; False on failure"""
        if self._client is None:
            return False

        if serialize_json and not isinstance(value, (str, bytes)):
            value = json.dumps(value)

        try:
            if ttl:
                self._client.setex(key, ttl, value)
            else:
                self._client.set(key, value)
        except Exception as e:
            logger.error(f"Redis SET {key} failed: {e}")
            return False
        return True

    def delete(self, *keys: str) -> int:
        if self._client is None or not keys:
            return 0
        try:
            return self._client.delete(*keys)
        except Exception as e:
            logger.error(f"Redis DEL failed: {e}")
            return 0

    def health_check(self) -> Dict[str, Any]:
        if not self.config.url:
            # Disabled is a valid deployment, not a failure
            return health_report(True, "disabled", message="Redis not configured")

        if self._client is None:
            return health_report(False, "not_connected", error="Client not initialized")

        try:
            self._client.ping()
            info = self._client.info()
        except Exception as e:
            return health_report(False, "error", error=str(e))

        return health_report(
            True, "connected",
            redis_version=info.get("redis_version", "unknown"),
            connected_clients=info.get("connected_clients", 0),
        )

    def _cleanup(self) -> None:
        if self._client is not None:
            self._client.close()

