"""
Key-value store used to hold the label set.
Implements an in-memory store and a Redis store behind one cache manager.
"""

import asyncio
import json
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

import redis.asyncio as redis

from field_label_sync.core.logging_config import get_logger
from field_label_sync.core.config import get_settings

logger = get_logger(__name__)


class InMemoryCache:
    """Simple in-process store for local runs and tests."""

    def __init__(self):
        self.cache: Dict[str, str] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    async def get(self, key: str) -> Optional[Any]:
        """Gets value from cache."""
        value = self.cache.get(key)
        if value is None:
            return None
        logger.debug(f"Cache hit: key={key}")
        # Stored as JSON so callers never share mutable state with the store
        return json.loads(value)

    async def set(self, key: str, value: Any) -> None:
        """Sets value in cache."""
        self.cache[key] = json.dumps(value, default=str)
        logger.debug(f"Cache set: key={key}")

    @asynccontextmanager
    async def lock(self, name: str, timeout: Optional[float] = None) -> AsyncIterator[None]:
        """Process-local mutual exclusion keyed by name."""
        lock = self._locks.setdefault(name, asyncio.Lock())
        async with lock:
            yield

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        return None


class RedisCache:
    """
    Store backed by Redis. Values are JSON encoded.

    redis.asyncio connections belong to the event loop that opened them, and
    queue workers run every message on a fresh loop. The client is therefore
    created on first use in the running loop and dropped by close().
    """

    def __init__(self, redis_url: str = "redis://localhost:6379/0"):
        self.redis_url = redis_url
        self._client: Optional[redis.Redis] = None
        self._client_loop: Optional[asyncio.AbstractEventLoop] = None
        logger.info(f"Redis cache initialized: url={redis_url}")

    @property
    def redis_client(self) -> redis.Redis:
        loop = asyncio.get_running_loop()
        if self._client is None or self._client_loop is not loop:
            if self._client is not None:
                logger.warning("Redis client used from a new event loop without close(), reconnecting")
            self._client = redis.from_url(self.redis_url, decode_responses=True)
            self._client_loop = loop
        return self._client

    async def get(self, key: str) -> Optional[Any]:
        """Gets value from cache."""
        try:
            value = await self.redis_client.get(key)
        except redis.RedisError as e:
            logger.error(f"Redis get error: key={key} error={e}")
            raise

        if value is None:
            return None
        return json.loads(value)

    async def set(self, key: str, value: Any) -> None:
        """Sets value in cache."""
        serialized_value = json.dumps(value, default=str)
        try:
            await self.redis_client.set(key, serialized_value)
        except redis.RedisError as e:
            logger.error(f"Redis set error: key={key} error={e}")
            raise

    @asynccontextmanager
    async def lock(self, name: str, timeout: Optional[float] = 60.0) -> AsyncIterator[None]:
        """Distributed lock shared by every worker talking to this Redis."""
        async with self.redis_client.lock(f"lock:{name}", timeout=timeout):
            yield

    async def ping(self) -> bool:
        try:
            return bool(await self.redis_client.ping())
        except redis.RedisError as e:
            logger.warning(f"Redis ping failed: {e}")
            return False

    async def close(self) -> None:
        """Close the client of the current loop; the next call reconnects."""
        client, self._client, self._client_loop = self._client, None, None
        if client is not None:
            await client.aclose()


class CacheManager:
    """Cache manager that picks the configured store."""

    def __init__(self, backend: Optional[str] = None, redis_url: Optional[str] = None):
        settings = get_settings()
        self.backend = backend or settings.CACHE_BACKEND

        if self.backend == "redis":
            self.primary_cache = RedisCache(redis_url or settings.REDIS_URL)
        else:
            self.primary_cache = InMemoryCache()

        logger.info(f"Cache manager initialized: cache_type={type(self.primary_cache).__name__}")

    async def get(self, key: str) -> Optional[Any]:
        """Gets value from cache."""
        return await self.primary_cache.get(key)

    async def set(self, key: str, value: Any) -> None:
        """Sets value in cache."""
        await self.primary_cache.set(key, value)

    def lock(self, name: str, timeout: Optional[float] = 60.0):
        return self.primary_cache.lock(name, timeout=timeout)

    async def ping(self) -> bool:
        return await self.primary_cache.ping()

    async def close(self) -> None:
        await self.primary_cache.close()

    def stats(self) -> Dict[str, Any]:
        """Returns cache statistics."""
        return {"cache_type": type(self.primary_cache).__name__, "backend": self.backend}


# Global cache instance (lazy initialization)
_cache_manager: Optional[CacheManager] = None


def get_cache_manager() -> CacheManager:
    """Returns cache manager instance."""
    global _cache_manager
    if _cache_manager is None:
        _cache_manager = CacheManager()
    return _cache_manager


def set_cache_manager(manager: Optional[CacheManager]) -> None:
    """Replace the global cache manager (None resets it)."""
    global _cache_manager
    _cache_manager = manager
