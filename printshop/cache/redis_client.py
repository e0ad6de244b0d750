"""
Redis client with connection pooling for short-lived reference data.

The workflow caches resolved exchange rates here so that pricing a batch of
orders does not hit the exchange_rates table for every line. Cached values
are strings; the caller owns serialization.
"""

from typing import Optional, Union

from redis.asyncio import ConnectionPool, Redis
from redis.asyncio.retry import Retry
from redis.backoff import ExponentialBackoff
from redis.exceptions import ConnectionError, RedisError, TimeoutError

from printshop.core.config import get_settings
from printshop.core.logging import get_logger

logger = get_logger(__name__)


class RedisClient:
    """
    Async Redis client with connection pooling and retry logic.

    Only the handful of operations the cache layer needs are exposed.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        max_connections: Optional[int] = None,
        socket_timeout: float = 5.0,
    ):
        settings = get_settings()
        self._url = url or settings.redis_url
        self._max_connections = max_connections or settings.redis_max_connections
        self._socket_timeout = socket_timeout

        self._pool: Optional[ConnectionPool] = None
        self._client: Optional[Redis] = None
        self._is_connected = False

    @staticmethod
    def _sanitize_url(url: str) -> str:
        """Strip credentials from a Redis URL for logging."""
        if "@" in url:
            protocol, rest = url.split("://", 1)
            _, host_part = rest.split("@", 1)
            return f"{protocol}://***@{host_part}"
        return url

    @property
    def is_connected(self) -> bool:
        return self._is_connected

    async def connect(self) -> None:
        """
        Establish Redis connection.

        Raises:
            ConnectionError: If connection cannot be established
        """
        if self._is_connected:
            return

        try:
            self._pool = ConnectionPool.from_url(
                self._url,
                max_connections=self._max_connections,
                socket_timeout=self._socket_timeout,
                socket_connect_timeout=self._socket_timeout,
                retry=Retry(ExponentialBackoff(base=0.1, cap=2.0), retries=3),
                decode_responses=True,
            )
            self._client = Redis(connection_pool=self._pool)
            await self._client.ping()
            self._is_connected = True

            logger.info(
                "Redis connection established",
                url=self._sanitize_url(self._url),
                pool_size=self._max_connections,
            )
        except (ConnectionError, TimeoutError) as e:
            logger.error(
                "Failed to connect to Redis",
                error=str(e),
                url=self._sanitize_url(self._url),
            )
            await self.disconnect()
            raise ConnectionError(f"Redis connection failed: {e}") from e

    async def disconnect(self) -> None:
        """Close Redis connection and release the pool."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        if self._pool is not None:
            await self._pool.aclose()
            self._pool = None
        if self._is_connected:
            self._is_connected = False
            logger.info("Redis connection closed")

    def _ensure_connected(self) -> Redis:
        if not self._is_connected or self._client is None:
            raise ConnectionError("Redis client is not connected")
        return self._client

    async def get(self, key: str) -> Optional[str]:
        """
        Get value from Redis by key.

        Raises:
            ConnectionError: If Redis is not connected
            RedisError: If Redis operation fails
        """
        client = self._ensure_connected()
        try:
            value = await client.get(key)
            logger.debug("Redis GET operation", key=key, found=value is not None)
            return value
        except RedisError as e:
            logger.error("Redis GET operation failed", key=key, error=str(e))
            raise

    async def set(
        self,
        key: str,
        value: Union[str, int, float],
        ex: Optional[int] = None,
    ) -> bool:
        """
        Set value in Redis with optional expiration in seconds.

        Raises:
            ConnectionError: If Redis is not connected
            RedisError: If Redis operation fails
        """
        client = self._ensure_connected()
        try:
            result = await client.set(key, value, ex=ex)
            logger.debug("Redis SET operation", key=key, ex=ex, success=bool(result))
            return bool(result)
        except RedisError as e:
            logger.error("Redis SET operation failed", key=key, error=str(e))
            raise

    async def delete(self, *keys: str) -> int:
        """Delete one or more keys, returning how many existed."""
        client = self._ensure_connected()
        try:
            return await client.delete(*keys)
        except RedisError as e:
            logger.error("Redis DELETE operation failed", keys=keys, error=str(e))
            raise


class CacheKeyManager:
    """
    Builds namespaced cache keys.

    Example:
        >>> CacheKeyManager("printshop").exchange_rate_key("c1", "usd")
        'printshop:rate:c1:usd'
    """

    def __init__(self, namespace: str = "printshop"):
        self.namespace = namespace

    def make_key(self, *parts: Union[str, int]) -> str:
        key_parts = [str(part) for part in parts if part]
        return ":".join([self.namespace] + key_parts)

    def exchange_rate_key(self, company_id: object, currency_id: object) -> str:
        return self.make_key("rate", str(company_id), str(currency_id))


_redis_client: Optional[RedisClient] = None


async def get_redis_client() -> RedisClient:
    """
    Get or create global Redis client instance.

    Raises:
        ConnectionError: If Redis connection fails
    """
    global _redis_client

    if _redis_client is None:
        client = RedisClient()
        await client.connect()
        _redis_client = client

    return _redis_client


async def close_redis_client() -> None:
    """Close the global Redis client connection if one was opened."""
    global _redis_client

    if _redis_client is not None:
        await _redis_client.disconnect()
        _redis_client = None
