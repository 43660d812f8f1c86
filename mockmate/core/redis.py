"""
Redis client

Shared redis.asyncio connection; disabled when REDIS_URL is empty
"""
from typing import Optional

import redis.asyncio as redis
from loguru import logger

from .config import settings


class RedisClient:
    """Redis client singleton"""

    _instance: Optional[redis.Redis] = None

    @classmethod
    async def connect(cls) -> Optional[redis.Redis]:
        """Open the connection and verify it with PING"""
        if not settings.redis_url:
            logger.info("Redis disabled (REDIS_URL not set), using in-process cache")
            return None
        if cls._instance is None:
            client = redis.from_url(
                settings.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_keepalive=True,
            )
            try:
                await client.ping()
            except redis.RedisError as exc:
                logger.warning("Redis unavailable ({}), using in-process cache", exc)
                await client.aclose()
                return None
            cls._instance = client
            logger.info("Redis connected: {}", settings.redis_url.split("@")[-1])
        return cls._instance

    @classmethod
    def get_client(cls) -> Optional[redis.Redis]:
        """Current client, None when not connected"""
        return cls._instance

    @classmethod
    def is_connected(cls) -> bool:
        return cls._instance is not None

    @classmethod
    async def close(cls) -> None:
        """Close the connection"""
        if cls._instance is not None:
            await cls._instance.aclose()
            cls._instance = None
