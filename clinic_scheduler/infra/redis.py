"""
Redis Connection Management

Redis connection used for conversation transcripts. Degrades gracefully:
when Redis cannot be reached callers receive None and fall back to
in-process storage.
"""

import logging
from typing import Optional

import redis.asyncio as redis
from redis.asyncio import Redis
from redis.asyncio.retry import Retry
from redis.backoff import ExponentialBackoff
from redis.exceptions import ConnectionError, TimeoutError, RedisError

logger = logging.getLogger(__name__)

# App prefix for namespacing (allows multiple apps/versions on same Redis)
APP_PREFIX = "clinic_scheduler:v1:"


class RedisClient:
    """
    Lazily connected Redis client with an explicit close.

    Features:
    - Connection pooling
    - Automatic retries
    - Timeouts
    - Graceful failure handling
    """

    def __init__(self, url: str):
        self.url = url
        self._client: Optional[Redis] = None
        self._connected = False

    async def get_client(self) -> Optional[Redis]:
        """
        Get or create Redis client.

        Returns:
            Redis client or None if connection fails
        """
        if self._client is not None and self._connected:
            return self._client

        try:
            retry = Retry(ExponentialBackoff(), retries=3)

            self._client = redis.from_url(
                self.url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5.0,
                socket_timeout=5.0,
                retry_on_timeout=True,
                retry=retry,
            )

            await self._client.ping()
            self._connected = True
            logger.info("Redis connection established successfully")
            return self._client

        except (ConnectionError, TimeoutError, RedisError) as e:
            logger.error(f"Failed to connect to Redis: {e}")
            self._connected = False
            self._client = None
            return None

    async def close(self) -> None:
        """Close Redis connection."""
        if self._client is not None:
            try:
                await self._client.aclose()
                logger.info("Redis connection closed")
            except RedisError as e:
                logger.error(f"Error closing Redis connection: {e}")
            finally:
                self._client = None
                self._connected = False


async def check_redis_health(client: Optional[RedisClient]) -> bool:
    """Return True if Redis answers PING."""
    if client is None:
        return False
    conn = await client.get_client()
    if conn is None:
        return False
    try:
        return bool(await conn.ping())
    except RedisError:
        return False
