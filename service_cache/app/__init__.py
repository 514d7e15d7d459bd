"""
Cache Service package for the Cache Gateway.

This package exposes a TTL-based cache-aside API over a key/value store.
It provides:

- app.main: HTTP surface for setting, reading, listing and deleting entries.
- app.cache: Cache record model, codec, error taxonomy and the gateway.
- app.adapters: Store adapters (Redis, in-memory) and the HTTP API client.

Guidelines:
- The service is stateless; the backing store owns presence and expiry.
- A record that fails to decode is reported, never passed through raw.
"""
