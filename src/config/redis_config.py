#!/usr/bin/env python3
"""
Redis Configuration Module
Handles the optional Redis connection used to share rate limit counters
between application instances.
"""

import logging
import os

import redis
from redis.connection import ConnectionPool

logger = logging.getLogger(__name__)


class RedisConfig:
    """Redis configuration and connection management"""

    def __init__(self, redis_url: str | None = None):
        # Priority: explicit argument > REDIS_URL > host/port fallback
        self.redis_url = redis_url or os.environ.get("REDIS_URL", "redis://localhost:6379/0")
        self.redis_password = os.environ.get("REDIS_PASSWORD")
        self.redis_host = os.environ.get("REDIS_HOST", "localhost")
        self.redis_port = int(os.environ.get("REDIS_PORT", "6379"))
        self.redis_db = int(os.environ.get("REDIS_DB", "0"))
        self.redis_max_connections = int(os.environ.get("REDIS_MAX_CONNECTIONS", "50"))
        # Short timeouts: a slow Redis degrades to the in-memory store
        self.redis_socket_timeout = int(os.environ.get("REDIS_SOCKET_TIMEOUT", "2"))
        self.redis_socket_connect_timeout = int(os.environ.get("REDIS_SOCKET_CONNECT_TIMEOUT", "2"))

        self._client: redis.Redis | None = None
        self._pool: ConnectionPool | None = None

    def get_connection_pool(self) -> ConnectionPool:
        """Get Redis connection pool"""
        if self._pool is None:
            connection_kwargs = {
                "max_connections": self.redis_max_connections,
                "socket_timeout": self.redis_socket_timeout,
                "socket_connect_timeout": self.redis_socket_connect_timeout,
                "decode_responses": True,
            }
            if self.redis_url and "://" in self.redis_url:
                if self.redis_url.startswith("rediss://"):
                    connection_kwargs["ssl_cert_reqs"] = None
                self._pool = ConnectionPool.from_url(self.redis_url, **connection_kwargs)
            else:
                self._pool = ConnectionPool(
                    host=self.redis_host,
                    port=self.redis_port,
                    db=self.redis_db,
                    password=self.redis_password,
                    **connection_kwargs,
                )
        return self._pool

    def get_client(self) -> redis.Redis | None:
        """Get Redis client instance, or None when Redis cannot be reached."""
        if self._client is None:
            try:
                client = redis.Redis(connection_pool=self.get_connection_pool())
                client.ping()
                self._client = client
                logger.info("Redis connection established successfully")
            except Exception as e:
                logger.warning(f"Redis unavailable: {e}. Rate limits stay per-process.")
                self._client = None
        return self._client
