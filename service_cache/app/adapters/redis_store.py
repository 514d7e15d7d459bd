"""
Redis-backed cache store.
"""

from datetime import timedelta
from typing import AsyncIterator, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from shared.logging import get_logger
from ..cache.errors import CacheStoreError
from .store import CacheStore, escape_glob


class RedisCacheStore(CacheStore):
    """Cache store over a shared Redis instance.

    Values are stored with ``SET ... EX``; expiry is left entirely to Redis.
    Responses are not decoded by the client: ``get`` returns the raw bytes so
    that a value which is not valid UTF-8 reaches the codec and is reported
    as a corrupt record. An optional ``key_prefix`` namespaces every store
    key; it is glob-escaped for ``SCAN MATCH`` and stripped again from
    enumerated keys.
    """

    def __init__(self, redis_url: str, key_prefix: str = "", scan_count: int = 100):
        self.redis_url = redis_url
        self.key_prefix = key_prefix
        self.scan_count = scan_count
        self.logger = get_logger("cache.store.redis")
        self.redis: redis.Redis = redis.from_url(
            redis_url,
            encoding="utf-8",
            encoding_errors="surrogateescape",
            socket_connect_timeout=5,
            socket_timeout=5,
            health_check_interval=30
        )

    def _store_key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    async def start(self) -> None:
        """Verify the Redis connection."""
        try:
            await self.redis.ping()
        except RedisError as e:
            self.logger.error("Failed to connect to Redis", redis_url=self.redis_url, error=str(e))
            raise CacheStoreError("ping", str(e)) from e
        self.logger.info("Redis cache store started", key_prefix=self.key_prefix)

    async def stop(self) -> None:
        """Close the Redis connection pool."""
        await self.redis.aclose()
        self.logger.info("Redis cache store stopped")

    async def set_with_ttl(self, key: str, text: str, ttl: timedelta) -> None:
        try:
            await self.redis.set(self._store_key(key), text, ex=ttl)
        except RedisError as e:
            raise CacheStoreError("set", str(e)) from e

    async def get(self, key: str) -> Optional[bytes]:
        try:
            return await self.redis.get(self._store_key(key))
        except RedisError as e:
            raise CacheStoreError("get", str(e)) from e

    async def delete(self, key: str) -> bool:
        try:
            removed = await self.redis.delete(self._store_key(key))
        except RedisError as e:
            raise CacheStoreError("delete", str(e)) from e
        return removed > 0

    async def list_keys(self, pattern: str = "*") -> AsyncIterator[str]:
        prefix_len = len(self.key_prefix)
        try:
            async for store_key in self.redis.scan_iter(match=escape_glob(self.key_prefix) + pattern, count=self.scan_count):
                yield store_key.decode("utf-8", "surrogateescape")[prefix_len:]
        except RedisError as e:
            raise CacheStoreError("scan", str(e)) from e

    async def ttl(self, key: str) -> Optional[int]:
        try:
            remaining = await self.redis.ttl(self._store_key(key))
        except RedisError as e:
            raise CacheStoreError("ttl", str(e)) from e
        # -2: key does not exist, -1: key has no expiry
        if remaining == -2:
            return None
        return remaining

    async def health_check(self) -> bool:
        """Check Redis health."""
        try:
            await self.redis.ping()
            return True
        except RedisError:
            return False
