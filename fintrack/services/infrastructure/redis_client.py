# fintrack/services/infrastructure/redis_client.py
import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool

from fintrack.config import settings
from fintrack.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

# Deletes the key only if it still holds our token
_RELEASE_LOCK_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


class FastRedisClient:
    """Pooled async Redis client. Optional: every call degrades gracefully when REDIS_URL is unset."""

    def __init__(self):
        self.pool = None
        self.client = None
        self._initialized = False

    @property
    def configured(self) -> bool:
        return bool(settings.REDIS_URL)

    async def initialize(self):
        """Initialize connection pool on startup"""
        if self._initialized or not self.configured:
            return

        try:
            self.pool = ConnectionPool.from_url(
                settings.REDIS_URL,
                max_connections=10,
                retry_on_timeout=True,
                socket_connect_timeout=10,
                socket_timeout=10,
                health_check_interval=30,
                decode_responses=True,
            )
            self.client = redis.Redis(connection_pool=self.pool)

            result = await self.client.ping()
            logger.info("Redis ping successful", result=result)

            self._initialized = True
            logger.info("Redis client initialized successfully", max_connections=10)

        except (redis.RedisError, OSError) as e:
            logger.error("Failed to initialize Redis client", error=str(e))
            self._initialized = False
            raise RuntimeError("Redis initialization failed") from e

    async def close(self):
        """Clean shutdown"""
        try:
            if self.client:
                await self.client.aclose()
            if self.pool:
                await self.pool.disconnect()
        except redis.RedisError as e:
            logger.error("Error closing Redis client", error=str(e))
        finally:
            self._initialized = False
            logger.info("Redis client closed")

    async def _ensure_initialized(self) -> bool:
        if not self._initialized:
            await self.initialize()
        return self._initialized

    async def ping(self) -> bool:
        try:
            if not await self._ensure_initialized():
                return False
            return bool(await self.client.ping())
        except (redis.RedisError, RuntimeError) as e:
            logger.error("Redis ping failed", error=str(e))
            return False

    async def acquire_lock(self, key: str, token: str, ttl_s: int) -> bool | None:
        """
        Try to take a lock with SET NX EX.

        Returns:
            True if acquired, False if another holder owns it, None if Redis
            is not configured or unreachable.
        """
        try:
            if not await self._ensure_initialized():
                return None
            result = await self.client.set(key, token, nx=True, ex=ttl_s)
            return bool(result)
        except (redis.RedisError, RuntimeError) as e:
            logger.error("Redis lock acquire failed", key=key, error=str(e))
            return None

    async def release_lock(self, key: str, token: str) -> bool:
        try:
            if not await self._ensure_initialized():
                return False
            released = await self.client.eval(_RELEASE_LOCK_SCRIPT, 1, key, token)
            return bool(released)
        except (redis.RedisError, RuntimeError) as e:
            logger.error("Redis lock release failed", key=key, error=str(e))
            return False


# Global instance
fast_redis = FastRedisClient()
