"""
Cache service for the Cache Gateway.

HTTP binding of the cache gateway. Routes only marshal: misses become
404s, store failures 503s, corrupt records 500s. Keys are matched as whole
paths, so a key may contain ``/``; remaining TTL lives under ``/ttl/`` to
keep it apart from key paths.
"""

from typing import Dict, List, Optional
from urllib.parse import quote

from fastapi import Query, Response, status
from fastapi.responses import JSONResponse

from shared.base_service import BaseService
from shared.config import ServiceConfig

from .adapters.store import CacheStore, create_cache_store
from .cache.gateway import CacheGateway
from .models import (
    CacheEntryResponse,
    CacheItemRequest,
    CacheItemResponse,
    CacheItemValue,
    CacheTTLResponse,
)


def _not_found(key: str) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"message": f"Key '{key}' not found in cache"}
    )


class CacheService(BaseService):
    """Cache service implementation."""

    def __init__(self, store: Optional[CacheStore] = None, config: Optional[ServiceConfig] = None):
        super().__init__("cache", 8020, config=config)

        self.store = store if store is not None else create_cache_store(self.config)
        self.gateway = CacheGateway(self.store, metrics=self.metrics)

        self._setup_cache_routes()

    def _setup_cache_routes(self):
        """Set up cache-specific routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "cache",
                "message": "Cache Gateway - Cache Service",
                "version": "1.0.0",
                "ttl": self.gateway.expires_in
            }

        @self.app.post(
            "/cache/{key:path}",
            response_model=CacheItemResponse,
            status_code=status.HTTP_201_CREATED
        )
        async def set_cache_value(
            key: str,
            request: CacheItemRequest,
            response: Response
        ):
            """Store a value under key for the fixed TTL."""
            record = await self.gateway.set(key, request.data, request.metadata)
            response.headers["Location"] = f"/cache/{quote(key, safe='')}"
            return CacheItemResponse(
                key=record.key,
                value=CacheItemValue.from_record(record),
                expires_in=self.gateway.expires_in
            )

        @self.app.get("/cache", response_model=List[CacheEntryResponse])
        async def get_all_cache_values(
            pattern: str = Query("*", description="Glob pattern matched against keys"),
            skip_corrupt: bool = Query(False, description="Skip records that fail to decode")
        ):
            """List every currently enumerable entry (best-effort)."""
            records = await self.gateway.list(pattern, skip_corrupt=skip_corrupt)
            return [CacheEntryResponse.from_record(record) for record in records]

        @self.app.get(
            "/cache/{key:path}",
            response_model=CacheEntryResponse,
            responses={404: {"description": "Key not found"}}
        )
        async def get_cache_value(key: str):
            """Read the value stored under key."""
            record = await self.gateway.get(key)
            if record is None:
                return _not_found(key)
            return CacheEntryResponse.from_record(record)

        @self.app.get(
            "/ttl/{key:path}",
            response_model=CacheTTLResponse,
            responses={404: {"description": "Key not found"}}
        )
        async def get_cache_ttl(key: str):
            """Seconds until the store expires key."""
            remaining = await self.gateway.time_remaining(key)
            if remaining is None:
                return _not_found(key)
            return CacheTTLResponse(key=key, ttl_seconds=remaining)

        @self.app.delete(
            "/cache/{key:path}",
            status_code=status.HTTP_204_NO_CONTENT,
            response_class=Response,
            responses={404: {"description": "Key not found"}}
        )
        async def delete_cache_value(key: str):
            """Remove the value stored under key."""
            if not await self.gateway.delete(key):
                return _not_found(key)
            return Response(status_code=status.HTTP_204_NO_CONTENT)

    async def _check_dependencies(self) -> Dict[str, str]:
        """Check cache service dependencies."""
        return {"cache_store": "ok" if await self.store.health_check() else "error"}

    async def start(self):
        """Start cache service components."""
        await self.store.start()
        self.logger.info("Cache service started", backend=type(self.store).__name__)

    async def stop(self):
        """Stop cache service components."""
        await self.store.stop()
        self.logger.info("Cache service stopped")


def create_app():
    """Create cache service application."""
    service = CacheService()
    return service.app


if __name__ == "__main__":
    service = CacheService()
    service.run()
