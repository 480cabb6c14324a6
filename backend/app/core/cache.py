"""Key-value caches with per-entry expiry"""

import fnmatch
import threading
import time
from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Callable, Dict, Generic, Hashable, List, Optional, Sequence, Tuple, TypeVar

import redis.asyncio as redis
from redis.asyncio import Redis
from redis.exceptions import RedisError

from backend.app.core.config import settings
from backend.app.core.exceptions import CacheUnavailableException
from backend.app.core.logging import get_logger

logger = get_logger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class TTLCache(Generic[K, V]):
    """
    In-process map with an expiry timestamp per entry

    Expired entries are evicted lazily when read. Safe to share between
    threads; the lock only guards dictionary access.
    """

    def __init__(self, ttl: timedelta, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl.total_seconds()
        self._clock = clock
        self._entries: Dict[K, Tuple[V, float]] = {}
        self._lock = threading.Lock()

    def get(self, key: K) -> Optional[V]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    def set(self, key: K, value: V, ttl: Optional[timedelta] = None) -> None:
        ttl_seconds = ttl.total_seconds() if ttl is not None else self.ttl_seconds
        with self._lock:
            self._entries[key] = (value, self._clock() + ttl_seconds)

    def delete(self, key: K) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def keys(self) -> List[K]:
        """Keys that have not expired yet"""
        now = self._clock()
        with self._lock:
            return [k for k, (_, expires_at) in self._entries.items() if now < expires_at]

    def purge_expired(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [k for k, (_, expires_at) in self._entries.items() if now >= expires_at]
            for k in expired:
                del self._entries[k]
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self.keys())


class CacheBackend(ABC):
    """String store with TTL, as the distance cache consumes it"""

    @abstractmethod
    async def get_many(self, keys: Sequence[str]) -> Dict[str, str]:
        """
        Fetch several keys at once

        Returns:
            Mapping of found keys to values; missing keys are absent

        Raises:
            CacheUnavailableException: If the backend cannot be reached
        """

    @abstractmethod
    async def set(self, key: str, value: str, ttl: timedelta) -> None:
        """Store a value with an absolute expiry"""

    @abstractmethod
    async def set_many(self, entries: Dict[str, str], ttl: timedelta) -> None:
        """Store several values with the same expiry in one round trip"""

    @abstractmethod
    async def delete_pattern(self, pattern: str) -> int:
        """Delete keys matching a glob pattern, returning how many were removed"""


class InMemoryCacheBackend(CacheBackend):
    """Process-local backend for tests and single-process deployments"""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._cache: TTLCache[str, str] = TTLCache(
            timedelta(hours=settings.DISTANCE_CACHE_TTL_HOURS), clock=clock
        )

    async def get_many(self, keys: Sequence[str]) -> Dict[str, str]:
        found = {}
        for key in keys:
            value = self._cache.get(key)
            if value is not None:
                found[key] = value
        return found

    async def set(self, key: str, value: str, ttl: timedelta) -> None:
        self._cache.set(key, value, ttl)

    async def set_many(self, entries: Dict[str, str], ttl: timedelta) -> None:
        for key, value in entries.items():
            self._cache.set(key, value, ttl)

    async def delete_pattern(self, pattern: str) -> int:
        removed = 0
        for key in self._cache.keys():
            if fnmatch.fnmatchcase(key, pattern) and self._cache.delete(key):
                removed += 1
        return removed


class RedisCacheBackend(CacheBackend):
    """Redis-backed cache shared by every service instance"""

    def __init__(self, redis_url: str = None, key_prefix: str = None):
        """Initialize backend; the connection is opened lazily"""
        self.redis_url = redis_url or settings.REDIS_URL
        self.key_prefix = key_prefix if key_prefix is not None else settings.REDIS_KEY_PREFIX
        self._redis: Optional[Redis] = None

    def _key(self, key: str) -> str:
        return f"{self.key_prefix}:{key}" if self.key_prefix else key

    async def connect(self) -> None:
        """Establish Redis connection"""
        try:
            self._redis = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=2,
                socket_timeout=2,
                retry_on_timeout=False
            )
            await self._redis.ping()
            logger.info("Connected to Redis cache")
        except (RedisError, OSError) as e:
            self._redis = None
            raise CacheUnavailableException(f"Failed to connect to Redis: {e}") from e

    async def disconnect(self) -> None:
        """Close Redis connection"""
        if self._redis:
            await self._redis.aclose()
            self._redis = None
            logger.info("Disconnected from Redis cache")

    async def _client(self) -> Redis:
        if not self._redis:
            await self.connect()
        return self._redis

    async def get_many(self, keys: Sequence[str]) -> Dict[str, str]:
        if not keys:
            return {}
        client = await self._client()
        try:
            values = await client.mget([self._key(k) for k in keys])
        except (RedisError, OSError) as e:
            raise CacheUnavailableException(f"Redis read failed: {e}") from e
        return {k: v for k, v in zip(keys, values) if v is not None}

    async def set(self, key: str, value: str, ttl: timedelta) -> None:
        client = await self._client()
        try:
            await client.setex(self._key(key), ttl, value)
        except (RedisError, OSError) as e:
            raise CacheUnavailableException(f"Redis write failed: {e}") from e

    async def set_many(self, entries: Dict[str, str], ttl: timedelta) -> None:
        if not entries:
            return
        client = await self._client()
        pipe = client.pipeline(transaction=False)
        for key, value in entries.items():
            pipe.setex(self._key(key), ttl, value)
        try:
            await pipe.execute()
        except (RedisError, OSError) as e:
            raise CacheUnavailableException(f"Redis write failed: {e}") from e

    async def delete_pattern(self, pattern: str) -> int:
        client = await self._client()
        removed = 0
        try:
            async for key in client.scan_iter(match=self._key(pattern), count=500):
                removed += await client.delete(key)
        except (RedisError, OSError) as e:
            raise CacheUnavailableException(f"Redis delete failed: {e}") from e
        return removed
