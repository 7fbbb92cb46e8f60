import redis.asyncio as redis
from typing import Dict, Optional
from inventory_ledger.core.config import settings
import logging

logger = logging.getLogger(__name__)

class RedisClient:
    def __init__(self, url: Optional[str] = None):
        self.url = url or settings.REDIS_URL
        self.redis = None

    async def connect(self):
        """Connect to Redis"""
        try:
            self.redis = redis.from_url(
                self.url,
                encoding="utf-8",
                decode_responses=True
            )
            await self.redis.ping()
            logger.info("✅ Redis connected successfully")
        except Exception as e:
            logger.error(f"❌ Redis connection failed: {str(e)}")
            self.redis = None
            raise

    async def disconnect(self):
        """Disconnect from Redis"""
        if self.redis:
            await self.redis.aclose()
            self.redis = None
            logger.info("Redis disconnected")

    async def hget(self, key: str, field: str) -> Optional[str]:
        if not self.redis:
            await self.connect()
        return await self.redis.hget(key, field)

    async def hgetall(self, key: str) -> Dict[str, str]:
        """Get every field of a hash"""
        if not self.redis:
            await self.connect()
        return await self.redis.hgetall(key)

    async def hset(self, key: str, field: str, value: str, expire: int = None):
        """Set one hash field, refreshing the key expiry when given"""
        if not self.redis:
            await self.connect()
        async with self.redis.pipeline(transaction=True) as pipe:
            pipe.hset(key, field, value)
            if expire:
                pipe.expire(key, expire)
            return await pipe.execute()

    async def hdel(self, key: str, field: str):
        if not self.redis:
            await self.connect()
        return await self.redis.hdel(key, field)

    async def delete(self, key: str):
        """Delete key"""
        if not self.redis:
            await self.connect()
        return await self.redis.delete(key)

# Global Redis client instance
redis_client = RedisClient()
