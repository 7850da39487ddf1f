"""Redis client for caching."""
import json
import logging
from typing import Optional, Any

from redis import asyncio as aioredis

from trip_importer.config import settings

logger = logging.getLogger(__name__)


class RedisClient:
    """Redis client wrapper with caching utilities.

    Every operation swallows connection errors and logs a warning.
    """

    def __init__(self, key_prefix: str = "trip_importer"):
        self.key_prefix = key_prefix
        self.client = aioredis.Redis(
            host=settings.redis_host,
            port=settings.redis_port,
            db=settings.redis_db,
            password=settings.redis_password,
            socket_timeout=settings.redis_timeout,
            socket_connect_timeout=settings.redis_timeout,
            decode_responses=True,
        )

    def _key(self, key: str) -> str:
        return f"{self.key_prefix}:{key}"

    async def get(self, key: str) -> Optional[Any]:
        """Get value from cache."""
        try:
            value = await self.client.get(self._key(key))
            if value:
                return json.loads(value)
            return None
        except Exception as e:
            logger.warning(f"Redis GET error: {e}")
            return None

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """Set value in cache with optional TTL."""
        try:
            serialized = json.dumps(value)
            if ttl:
                await self.client.setex(self._key(key), ttl, serialized)
            else:
                await self.client.set(self._key(key), serialized)
            return True
        except Exception as e:
            logger.warning(f"Redis SET error: {e}")
            return False

    async def ping(self) -> bool:
        """Check if Redis is connected."""
        try:
            return await self.client.ping()
        except Exception:
            return False


# Global Redis client instance
redis_client = RedisClient()
