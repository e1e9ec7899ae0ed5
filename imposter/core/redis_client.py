"""
Redis client configuration and connection management
Redis客户端配置和连接管理 - 仅用于跨进程变更广播
"""

import redis.asyncio as redis
from typing import Optional
from imposter.core.config import settings
import logging

logger = logging.getLogger(__name__)


class RedisManager:
    """Redis manager with lazy connection and health check"""

    def __init__(self):
        self.pool: Optional[redis.ConnectionPool] = None
        self.client: Optional[redis.Redis] = None

    async def initialize(self):
        """Initialize Redis connection pool"""
        try:
            self.pool = redis.ConnectionPool.from_url(
                settings.REDIS_URL,
                socket_timeout=settings.REDIS_SOCKET_TIMEOUT,
                retry_on_timeout=True,
                health_check_interval=30,
                encoding="utf-8",
                decode_responses=True
            )
            self.client = redis.Redis(connection_pool=self.pool)
            await self.client.ping()
            logger.info("Redis manager initialized successfully")

        except Exception as e:
            logger.error(f"Failed to initialize Redis manager: {e}")
            self.client = None
            # Don't raise in development mode to allow running without Redis
            if settings.ENVIRONMENT == "production":
                raise

    async def get_client(self) -> redis.Redis:
        """Get Redis client"""
        if self.client is None:
            raise RuntimeError("Redis connection unavailable")
        return self.client

    @property
    def available(self) -> bool:
        return self.client is not None

    async def close(self):
        """Close Redis connections"""
        if self.client:
            await self.client.aclose()
            self.client = None
        if self.pool:
            await self.pool.aclose()
            self.pool = None
        logger.info("Redis connections closed")


# Global Redis manager instance
redis_manager = RedisManager()


async def init_redis():
    """Initialize Redis connection"""
    await redis_manager.initialize()


async def close_redis():
    """Close Redis connection"""
    await redis_manager.close()
