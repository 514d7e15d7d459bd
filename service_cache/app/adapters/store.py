"""
Cache store adapters.

``CacheStore`` is the capability set the gateway depends on. A store keeps
opaque text per key with a TTL. Values come back as ``str`` or, from stores
that do not decode responses, as raw ``bytes``. A store reports absence as
``None`` and connectivity failures as ``CacheStoreError`` so the two never
get conflated.

Implementations:
    - ``InMemoryCacheStore``: single process, lazy expiry; local runs and tests
    - ``RedisCacheStore``: shared Redis instance (see ``redis_store``)
"""

import re
import time
from abc import ABC, abstractmethod
from datetime import timedelta
from typing import AsyncIterator, Callable, Dict, List, Optional, Pattern, Tuple, Union, TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.config import BaseConfig


StoredValue = Union[str, bytes]

_GLOB_SPECIAL = re.compile(r"([*?\[\]\\])")


def escape_glob(text: str) -> str:
    """Escape text so it matches itself literally in a Redis glob pattern."""
    return _GLOB_SPECIAL.sub(r"\\\1", text)


def compile_glob(pattern: str) -> Pattern[str]:
    """Compile a Redis-style glob into a regular expression.

    Supports ``*``, ``?``, ``[abc]``, ``[a-z]``, ``[^abc]`` and backslash
    escapes, the dialect ``SCAN MATCH`` uses.
    """
    parts: List[str] = []
    i, n = 0, len(pattern)
    while i < n:
        char = pattern[i]
        i += 1
        if char == "\\" and i < n:
            parts.append(re.escape(pattern[i]))
            i += 1
        elif char == "*":
            parts.append(".*")
        elif char == "?":
            parts.append(".")
        elif char == "[":
            negate = pattern.startswith("^", i)
            if negate:
                i += 1
            members: List[str] = []
            while i < n and pattern[i] != "]":
                if pattern[i] == "\\" and i + 1 < n:
                    i += 1
                    members.append(re.escape(pattern[i]))
                elif pattern[i] == "-" and members and i + 1 < n and pattern[i + 1] != "]":
                    members.append("-")
                else:
                    members.append(re.escape(pattern[i]))
                i += 1
            i += 1
            if members:
                parts.append("[" + ("^" if negate else "") + "".join(members) + "]")
            else:
                parts.append("." if negate else "(?!)")
        else:
            parts.append(re.escape(char))
    return re.compile("".join(parts), re.DOTALL)


class CacheStore(ABC):
    """Key/value store with per-key TTL."""

    @abstractmethod
    async def set_with_ttl(self, key: str, text: str, ttl: timedelta) -> None:
        """Store text under key, replacing any previous value and TTL."""

    @abstractmethod
    async def get(self, key: str) -> Optional[StoredValue]:
        """Return the stored value, or None when the key is absent."""

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Remove key. True if a value existed and was removed."""

    @abstractmethod
    def list_keys(self, pattern: str = "*") -> AsyncIterator[str]:
        """Lazily enumerate keys matching a Redis-style glob pattern.

        Every call starts a fresh scan. Keys written or removed while the
        scan runs may or may not be reported.
        """

    @abstractmethod
    async def ttl(self, key: str) -> Optional[int]:
        """Remaining TTL in seconds; -1 for no expiry, None when absent."""

    async def start(self) -> None:
        """Open connections to the backing store."""

    async def stop(self) -> None:
        """Release connections to the backing store."""

    async def health_check(self) -> bool:
        """Check the backing store is reachable."""
        return True


class InMemoryCacheStore(CacheStore):
    """Dict-backed store with lazy TTL expiry."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: Dict[str, Tuple[str, float]] = {}

    def _live(self, key: str) -> Optional[Tuple[str, float]]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        _, expires_at = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return entry

    async def set_with_ttl(self, key: str, text: str, ttl: timedelta) -> None:
        self._entries[key] = (text, self._clock() + ttl.total_seconds())

    async def get(self, key: str) -> Optional[str]:
        entry = self._live(key)
        return entry[0] if entry else None

    async def delete(self, key: str) -> bool:
        if self._live(key) is None:
            return False
        del self._entries[key]
        return True

    async def list_keys(self, pattern: str = "*") -> AsyncIterator[str]:
        # Snapshot the key set so concurrent writers cannot break iteration
        matcher = compile_glob(pattern)
        for key in list(self._entries):
            if matcher.fullmatch(key) and self._live(key) is not None:
                yield key

    async def ttl(self, key: str) -> Optional[int]:
        entry = self._live(key)
        if entry is None:
            return None
        _, expires_at = entry
        return max(0, int(round(expires_at - self._clock())))


def create_cache_store(config: "BaseConfig") -> CacheStore:
    """Build the store selected by configuration."""
    backend = config.store_backend.lower()
    if backend == "memory":
        return InMemoryCacheStore()
    if backend == "redis":
        from .redis_store import RedisCacheStore
        return RedisCacheStore(config.redis_url, key_prefix=config.key_prefix)
    raise ValueError(f"Unknown cache backend: {config.store_backend}")
