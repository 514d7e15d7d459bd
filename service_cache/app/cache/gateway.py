"""
Cache gateway: the cache-aside operations behind the HTTP surface.

The gateway stamps records, applies the fixed TTL policy, and turns store
and codec failures into ``StoreUnavailable`` and ``CorruptRecord``. A miss
is a normal outcome and comes back as ``None``. Expiry belongs to the store;
the gateway never tracks it.
"""

import time
from contextlib import contextmanager
from datetime import timedelta
from typing import Callable, Iterator, List, Optional, TYPE_CHECKING

from shared.logging import get_logger
from . import codec
from .errors import CacheStoreError, CorruptRecord, DecodeError, StoreUnavailable
from .record import CacheRecord, utc_now

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from datetime import datetime
    from shared.metrics import MetricsCollector
    from ..adapters.store import CacheStore, StoredValue


DEFAULT_TTL = timedelta(minutes=10)


def describe_ttl(ttl: timedelta) -> str:
    """Human-readable TTL, e.g. ``"10 minutes"``."""
    seconds = int(ttl.total_seconds())
    for unit, size in (("hour", 3600), ("minute", 60)):
        if seconds % size == 0 and seconds >= size:
            count = seconds // size
            return f"{count} {unit}" + ("s" if count != 1 else "")
    return f"{seconds} second" + ("s" if seconds != 1 else "")


class CacheGateway:
    """Set/get/list/delete over a cache store with a fixed TTL."""

    def __init__(
        self,
        store: "CacheStore",
        *,
        ttl: timedelta = DEFAULT_TTL,
        metrics: Optional["MetricsCollector"] = None,
        clock: Callable[[], "datetime"] = utc_now,
    ):
        self.store = store
        self.ttl = ttl
        self.metrics = metrics
        self.clock = clock
        self.logger = get_logger("cache.gateway")

    @property
    def expires_in(self) -> str:
        return describe_ttl(self.ttl)

    async def set(self, key: str, data: str, metadata: Optional[str] = None) -> CacheRecord:
        """Write a new record under key, replacing any existing one."""
        record = CacheRecord(key=key, data=data, metadata=metadata, created_at=self.clock())
        with self._operation("set"):
            await self.store.set_with_ttl(key, codec.encode(record), self.ttl)
        self.logger.debug("Cached record", key=key, ttl_seconds=int(self.ttl.total_seconds()))
        return record

    async def get(self, key: str) -> Optional[CacheRecord]:
        """Return the record under key, or None on a miss."""
        with self._operation("get"):
            text = await self.store.get(key)
            if text is None:
                self._count("cache_misses_total")
                self.logger.debug("Cache miss", key=key)
                return None

            self._count("cache_hits_total")
            return self._decode(key, text)

    async def list(self, pattern: str = "*", *, skip_corrupt: bool = False) -> List[CacheRecord]:
        """Best-effort listing of every record whose key matches pattern.

        Keys that disappear between the scan and the read are skipped.
        Undecodable records raise CorruptRecord unless ``skip_corrupt`` is
        set, in which case they are logged and counted instead.
        """
        records: List[CacheRecord] = []
        with self._operation("list"):
            async for key in self.store.list_keys(pattern):
                text = await self.store.get(key)
                if text is None:
                    continue
                try:
                    records.append(self._decode(key, text))
                except CorruptRecord as e:
                    if not skip_corrupt:
                        raise
                    self.logger.warning("Skipping corrupt cache record", key=key, reason=e.details["reason"])
        return records

    async def delete(self, key: str) -> bool:
        """Remove key. False when nothing was stored under it."""
        with self._operation("delete"):
            deleted = await self.store.delete(key)
        if not deleted:
            self.logger.debug("Delete of absent key", key=key)
        return deleted

    async def time_remaining(self, key: str) -> Optional[int]:
        """Seconds until the store expires key; -1 if it never will, None if absent."""
        with self._operation("ttl"):
            return await self.store.ttl(key)

    def _decode(self, key: str, text: "StoredValue") -> CacheRecord:
        try:
            return codec.decode(key, text)
        except DecodeError as e:
            self._count("cache_corrupt_records_total")
            raise CorruptRecord(key, str(e)) from e

    @contextmanager
    def _operation(self, operation: str) -> Iterator[None]:
        start_time = time.perf_counter()
        outcome = "ok"
        try:
            yield
        except CacheStoreError as e:
            outcome = "store_error"
            self.logger.error("Cache store error", operation=operation, error=str(e))
            raise StoreUnavailable(details={"operation": operation, "error": str(e)}) from e
        except CorruptRecord:
            outcome = "corrupt"
            raise
        finally:
            if self.metrics:
                self.metrics.increment_counter("cache_operations_total", operation=operation, outcome=outcome)
                self.metrics.observe_histogram(
                    "cache_operation_duration_seconds",
                    time.perf_counter() - start_time,
                    operation=operation
                )

    def _count(self, metric_name: str) -> None:
        if self.metrics:
            self.metrics.increment_counter(metric_name)
