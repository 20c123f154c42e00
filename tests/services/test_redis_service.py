# tests/services/test_redis_service.py
"""
Unit tests for the Redis service.

Uses mock-first approach to test without requiring a real Redis instance.
"""
import json
import pytest
from unittest.mock import Mock, patch

from lcs_request.services.redis_service import (
    RedisService,
    RedisConfig,
)
from lcs_request.core.exceptions import ConfigurationError, ServiceError


@pytest.fixture
def mock_config():
    """Create a test configuration"""
    return RedisConfig(
        url="redis://localhost:6379/0",
        decode_responses=True,
        socket_timeout=5.0
    )


@pytest.fixture
def mock_redis_client():
    """Create a mock Redis client"""
    client = Mock()
    client.ping.return_value = True
    client.get.return_value = None
    client.set.return_value = True
    client.setex.return_value = True
    client.delete.return_value = 1
    client.info.return_value = {
        "redis_version": "7.0.0",
        "connected_clients": 5,
    }
    return client


@pytest.fixture
def redis_service(mock_config, mock_redis_client):
    """Create a Redis service with mocked client"""
    service = RedisService(mock_config)

    with patch('lcs_request.services.redis_service.redis.from_url', return_value=mock_redis_client):
        service.initialize()

    return service


class TestRedisService:
    """Test Redis Service functionality"""

    def test_initialization(self, mock_config, mock_redis_client):
        service = RedisService(mock_config)

        assert service.config == mock_config
        assert not service.is_initialized

        with patch('lcs_request.services.redis_service.redis.from_url', return_value=mock_redis_client):
            service.initialize()

        assert service.is_initialized
        assert service.is_connected()
        mock_redis_client.ping.assert_called_once()

    def test_initialize_is_idempotent(self, redis_service, mock_redis_client):
        redis_service.initialize()
        mock_redis_client.ping.assert_called_once()

    def test_no_redis_url(self):
        """Without a URL the service initializes but stays disconnected"""
        service = RedisService()

        assert service.config.url is None

        service.initialize()
        assert service.is_initialized
        assert not service.is_connected()

    def test_connection_failure(self, mock_config):
        service = RedisService(mock_config)

        failing_client = Mock()
        failing_client.ping.side_effect = Exception("Connection refused")

        with patch('lcs_request.services.redis_service.redis.from_url', return_value=failing_client):
            # Should not raise but log warning
            service.initialize()

        assert service.is_initialized
        assert not service.is_connected()

    def test_unsupported_scheme_is_rejected(self):
        service = RedisService(RedisConfig(url="http://localhost:6379"))

        with pytest.raises(ConfigurationError) as exc_info:
            service.initialize()

        assert exc_info.value.details["component"] == "redis"
        assert not service.is_initialized

    def test_unexpected_init_error_is_wrapped(self, mock_config):
        service = RedisService(mock_config)

        with patch.object(service, '_validate_config', side_effect=RuntimeError("boom")):
            with pytest.raises(ServiceError) as exc_info:
                service.initialize()

        assert exc_info.value.details['error_type'] == 'RuntimeError'
        assert not service.is_initialized

    def test_get_string(self, redis_service, mock_redis_client):
        mock_redis_client.get.return_value = "test value"

        result = redis_service.get("test_key")

        assert result == "test value"
        mock_redis_client.get.assert_called_once_with("test_key")

    def test_get_json(self, redis_service, mock_redis_client):
        """Test getting JSON value with auto-deserialization"""
        mock_redis_client.get.return_value = '{"name": "test", "value": 42}'

        assert redis_service.get("test_key") == {"name": "test", "value": 42}

    def test_get_default(self, redis_service, mock_redis_client):
        mock_redis_client.get.return_value = None

        assert redis_service.get("missing_key", default="default_value") == "default_value"

    def test_get_no_client(self, redis_service):
        redis_service._client = None

        assert redis_service.get("test_key", default="fallback") == "fallback"

    def test_get_error_returns_default(self, redis_service, mock_redis_client):
        mock_redis_client.get.side_effect = Exception("timeout")

        assert redis_service.get("test_key", default={}) == {}

    def test_set_string(self, redis_service, mock_redis_client):
        assert redis_service.set("test_key", "test value") is True
        mock_redis_client.set.assert_called_once_with("test_key", "test value")

    def test_set_json(self, redis_service, mock_redis_client):
        data = {"name": "test", "value": 42}

        assert redis_service.set("test_key", data) is True
        mock_redis_client.set.assert_called_once_with("test_key", json.dumps(data))

    def test_set_with_ttl(self, redis_service, mock_redis_client):
        assert redis_service.set("test_key", "value", ttl=3600) is True
        mock_redis_client.setex.assert_called_once_with("test_key", 3600, "value")

    def test_set_no_client(self, redis_service):
        redis_service._client = None

        assert redis_service.set("test_key", "value") is False

    def test_set_error(self, redis_service, mock_redis_client):
        mock_redis_client.set.side_effect = Exception("read only replica")

        assert redis_service.set("test_key", "value") is False

    def test_delete(self, redis_service, mock_redis_client):
        mock_redis_client.delete.return_value = 2

        assert redis_service.delete("key1", "key2") == 2
        mock_redis_client.delete.assert_called_once_with("key1", "key2")

    def test_delete_without_keys(self, redis_service, mock_redis_client):
        assert redis_service.delete() == 0
        mock_redis_client.delete.assert_not_called()

    def test_health_check_connected(self, redis_service):
        health = redis_service.health_check()

        assert health["healthy"] is True
        assert health["status"] == "connected"
        assert health["details"]["redis_version"] == "7.0.0"

    def test_health_check_disabled(self):
        service = RedisService(RedisConfig(url=None))
        health = service.health_check()

        assert health["healthy"] is True
        assert health["status"] == "disabled"

    def test_health_check_not_connected(self, mock_config):
        health = RedisService(mock_config).health_check()

        assert health["healthy"] is False
        assert health["status"] == "not_connected"

    def test_health_check_error(self, redis_service, mock_redis_client):
        mock_redis_client.ping.side_effect = Exception("Connection lost")

        health = redis_service.health_check()

        assert health["healthy"] is False
        assert health["status"] == "error"
        assert "Connection lost" in health["details"]["error"]

    def test_shutdown(self, redis_service, mock_redis_client):
        redis_service.shutdown()

        mock_redis_client.close.assert_called_once()
        assert not redis_service.is_initialized
        assert not redis_service.is_connected()

