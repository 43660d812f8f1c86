"""
Key/value cache

Values go to Redis when it is connected, otherwise to a thread-safe in-process
store with per-key expiry. Redis errors are logged and never raised to callers.
"""
import json
import time
from dataclasses import dataclass
from threading import Lock
from typing import Any, Dict, Optional

from loguru import logger
from redis.exceptions import RedisError

from .redis import RedisClient


@dataclass
class CacheEntry:
    """In-process cache entry"""
    value: Any
    expires_at: Optional[float] = None

    def expired(self, now: Optional[float] = None) -> bool:
        return self.expires_at is not None and (now or time.time()) >= self.expires_at


class MemoryStore:
    """
    Thread-safe in-process store

    Used when Redis is not configured; expired keys are dropped on read.
    """

    def __init__(self):
        self._data: Dict[str, CacheEntry] = {}
        self._lock = Lock()

    def get(self, key: str) -> Any:
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return None
            if entry.expired():
                del self._data[key]
                return None
            return entry.value

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        with self._lock:
            expires_at = time.time() + ttl if ttl else None
            self._data[key] = CacheEntry(value=value, expires_at=expires_at)

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def incr(self, key: str, ttl: int) -> int:
        """Increment a counter; the window starts with the first hit"""
        with self._lock:
            entry = self._data.get(key)
            if entry is None or entry.expired():
                entry = CacheEntry(value=0, expires_at=time.time() + ttl)
                self._data[key] = entry
            entry.value += 1
            return entry.value

    def ttl(self, key: str) -> int:
        with self._lock:
            entry = self._data.get(key)
            if entry is None or entry.expires_at is None:
                return -1
            return max(0, int(entry.expires_at - time.time()))

    def purge_expired(self) -> int:
        """Drop expired keys, returns the number removed"""
        now = time.time()
        with self._lock:
            stale = [k for k, e in self._data.items() if e.expired(now)]
            for key in stale:
                del self._data[key]
            return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def __len__(self) -> int:
        return len(self._data)


class Cache:
    """Cache facade over Redis or the in-process store"""

    def __init__(self):
        self.memory = MemoryStore()

    @property
    def backend(self) -> str:
        return "redis" if RedisClient.is_connected() else "memory"

    async def get(self, key: str) -> Any:
        client = RedisClient.get_client()
        if client is None:
            return self.memory.get(key)
        try:
            raw = await client.get(key)
        except RedisError as exc:
            logger.warning("Cache get failed for {}: {}", key, exc)
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (TypeError, ValueError):
            return raw

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        client = RedisClient.get_client()
        if client is None:
            self.memory.set(key, value, ttl)
            return
        try:
            await client.set(key, json.dumps(value, default=str), ex=ttl)
        except RedisError as exc:
            logger.warning("Cache set failed for {}: {}", key, exc)

    async def delete(self, key: str) -> None:
        client = RedisClient.get_client()
        if client is None:
            self.memory.delete(key)
            return
        try:
            await client.delete(key)
        except RedisError as exc:
            logger.warning("Cache delete failed for {}: {}", key, exc)

    async def exists(self, key: str) -> bool:
        return await self.get(key) is not None

    async def incr(self, key: str, ttl: int) -> int:
        """Increment a fixed-window counter, setting its expiry on the first hit"""
        client = RedisClient.get_client()
        if client is None:
            return self.memory.incr(key, ttl)
        try:
            count = await client.incr(key)
            if count == 1:
                await client.expire(key, ttl)
            return int(count)
        except RedisError as exc:
            logger.warning("Cache incr failed for {}: {}", key, exc)
            return self.memory.incr(key, ttl)

    async def ttl(self, key: str) -> int:
        client = RedisClient.get_client()
        if client is None:
            return self.memory.ttl(key)
        try:
            return int(await client.ttl(key))
        except RedisError as exc:
            logger.warning("Cache ttl failed for {}: {}", key, exc)
            return -1

    def clear_local(self) -> None:
        """Clear the in-process store"""
        self.memory.clear()


# Global singleton
cache = Cache()
