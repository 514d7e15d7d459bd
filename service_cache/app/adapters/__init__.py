"""
Adapters package for the Cache Service.

- store: CacheStore interface, in-memory store and backend selection.
- redis_store: Redis-backed store using redis.asyncio.
- cache_api_client: HTTP client for the cache endpoints.
"""
