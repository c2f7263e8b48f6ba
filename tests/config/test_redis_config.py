"""
Tests for Redis Config
"""

from unittest.mock import MagicMock, patch

import redis

from src.config.redis_config import RedisConfig


class TestRedisConfig:
    """Test Redis Config functionality"""

    def test_explicit_url_wins(self, monkeypatch):
        monkeypatch.setenv("REDIS_URL", "redis://env-host:6379/0")
        config = RedisConfig("redis://explicit:6380/1")
        assert config.redis_url == "redis://explicit:6380/1"

    def test_pool_built_from_url(self):
        config = RedisConfig("redis://cache.internal:6380/2")
        pool = config.get_connection_pool()

        assert pool.connection_kwargs["host"] == "cache.internal"
        assert pool.connection_kwargs["port"] == 6380
        assert pool.connection_kwargs["db"] == 2
        assert config.get_connection_pool() is pool

    @patch("src.config.redis_config.redis.Redis")
    def test_get_client_success(self, mock_redis):
        client = MagicMock()
        mock_redis.return_value = client

        config = RedisConfig("redis://localhost:6379/0")

        assert config.get_client() is client
        client.ping.assert_called_once()
        # Cached after the first successful ping
        assert config.get_client() is client
        assert mock_redis.call_count == 1

    @patch("src.config.redis_config.redis.Redis")
    def test_get_client_unreachable_returns_none(self, mock_redis):
        mock_redis.return_value.ping.side_effect = redis.ConnectionError("refused")

        config = RedisConfig("redis://localhost:6379/0")

        assert config.get_client() is None
