"""
Unit tests for Cache main service.
"""

import asyncio
import pytest
from datetime import timedelta
from unittest.mock import AsyncMock, patch
from fastapi.testclient import TestClient

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_cache.app.main import CacheService
from service_cache.app.adapters.store import InMemoryCacheStore
from service_cache.app.cache.errors import CacheStoreError
from shared.config import get_config


class TestCacheService:
    """Test cases for CacheService."""

    @pytest.fixture
    def store(self):
        """In-memory backing store."""
        return InMemoryCacheStore()

    @pytest.fixture
    def cache_service(self, store):
        """Create CacheService instance."""
        return CacheService(store=store, config=get_config("cache", 8020, store_backend="memory"))

    @pytest.fixture
    def client(self, cache_service):
        """Create test client."""
        with TestClient(cache_service.app) as client:
            yield client

    def test_root_endpoint(self, client):
        """Test root endpoint."""
        response = client.get("/")
        assert response.status_code == 200
        data = response.json()
        assert data["service"] == "cache"
        assert data["ttl"] == "10 minutes"

    def test_health_endpoint(self, client):
        """Test health endpoint."""
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["service"] == "cache"
        assert data["status"] == "ok"
        assert data["dependencies"]["cache_store"] == "ok"

    def test_health_degraded_when_store_down(self, client, store):
        """Health reports the store dependency."""
        with patch.object(store, "health_check", new_callable=AsyncMock) as mock_health:
            mock_health.return_value = False
            response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "degraded"
        assert data["dependencies"]["cache_store"] == "error"

    def test_service_initialization(self, cache_service, store):
        """Test service initialization."""
        assert cache_service.service_name == "cache"
        assert cache_service.port == 8020
        assert cache_service.store is store
        assert cache_service.gateway.store is store

    def test_set_cache_value(self, client):
        """POST creates the entry and reports the TTL."""
        response = client.post("/cache/user:1", json={"data": "alice", "metadata": "vip"})

        assert response.status_code == 201
        assert response.headers["location"] == "/cache/user%3A1"
        data = response.json()
        assert data["key"] == "user:1"
        assert data["expiresIn"] == "10 minutes"
        assert data["value"]["data"] == "alice"
        assert data["value"]["metadata"] == "vip"
        assert data["value"]["createdAt"].endswith("Z")

    def test_set_requires_data(self, client):
        """A body without data is rejected."""
        response = client.post("/cache/k", json={"metadata": "m"})
        assert response.status_code == 422

    def test_cache_lifecycle(self, client):
        """Set, read, delete, then miss."""
        client.post("/cache/user:1", json={"data": "alice", "metadata": "vip"})

        response = client.get("/cache/user:1")
        assert response.status_code == 200
        data = response.json()
        assert data["key"] == "user:1"
        assert data["value"]["data"] == "alice"
        assert data["value"]["metadata"] == "vip"

        response = client.delete("/cache/user:1")
        assert response.status_code == 204
        assert response.content == b""

        response = client.get("/cache/user:1")
        assert response.status_code == 404

    def test_get_missing_key(self, client):
        """Misses return 404 with a message."""
        response = client.get("/cache/never-set")
        assert response.status_code == 404
        assert response.json() == {"message": "Key 'never-set' not found in cache"}

    def test_delete_missing_key(self, client):
        """Deleting an absent key returns 404."""
        response = client.delete("/cache/never-set")
        assert response.status_code == 404

    def test_list_cache_values(self, client):
        """GET /cache lists every live entry."""
        client.post("/cache/a", json={"data": "1"})
        client.post("/cache/b", json={"data": "2", "metadata": "m"})

        response = client.get("/cache")
        assert response.status_code == 200
        entries = {entry["key"]: entry["value"] for entry in response.json()}
        assert set(entries) == {"a", "b"}
        assert entries["a"]["metadata"] is None
        assert entries["b"]["metadata"] == "m"

    def test_list_cache_empty(self, client):
        """An empty store lists as an empty array."""
        response = client.get("/cache")
        assert response.status_code == 200
        assert response.json() == []

    def test_list_cache_pattern(self, client):
        """The pattern query narrows the listing."""
        client.post("/cache/user:1", json={"data": "1"})
        client.post("/cache/product:1", json={"data": "2"})

        response = client.get("/cache", params={"pattern": "user:*"})
        assert [entry["key"] for entry in response.json()] == ["user:1"]

    def test_corrupt_record_returns_500(self, client, store):
        """A malformed stored blob is a server error, not a value."""
        asyncio.run(store.set_with_ttl("bad", "not json", timedelta(minutes=10)))

        response = client.get("/cache/bad")
        assert response.status_code == 500
        data = response.json()
        assert data["code"] == "CORRUPT_RECORD"
        assert data["details"]["key"] == "bad"

    def test_list_with_corrupt_record(self, client, store):
        """Listing fails on corrupt records unless asked to skip them."""
        client.post("/cache/good", json={"data": "v"})
        asyncio.run(store.set_with_ttl("bad", "[]", timedelta(minutes=10)))

        response = client.get("/cache")
        assert response.status_code == 500
        assert response.json()["code"] == "CORRUPT_RECORD"

        response = client.get("/cache", params={"skip_corrupt": "true"})
        assert response.status_code == 200
        assert [entry["key"] for entry in response.json()] == ["good"]

    def test_ttl_endpoint(self, client):
        """Remaining TTL is reported for live keys."""
        client.post("/cache/k", json={"data": "v"})

        response = client.get("/ttl/k")
        assert response.status_code == 200
        data = response.json()
        assert data["key"] == "k"
        assert 0 < data["ttlSeconds"] <= 600

        response = client.get("/ttl/missing")
        assert response.status_code == 404

    def test_key_containing_slash(self, client):
        """Keys may contain slashes, encoded or not."""
        response = client.post("/cache/orders%2F42", json={"data": "pending"})
        assert response.status_code == 201
        assert response.json()["key"] == "orders/42"
        assert response.headers["location"] == "/cache/orders%2F42"

        response = client.get("/cache/orders/42")
        assert response.status_code == 200
        assert response.json()["value"]["data"] == "pending"

        response = client.get("/ttl/orders/42")
        assert response.status_code == 200
        assert response.json()["key"] == "orders/42"

        assert [entry["key"] for entry in client.get("/cache").json()] == ["orders/42"]

        assert client.delete("/cache/orders%2F42").status_code == 204
        assert client.get("/cache/orders/42").status_code == 404

    def test_key_ending_in_ttl(self, client):
        """A key ending in /ttl is an ordinary key, not the TTL route."""
        client.post("/cache/session/ttl", json={"data": "v"})

        response = client.get("/cache/session/ttl")
        assert response.status_code == 200
        assert response.json()["key"] == "session/ttl"
        assert client.get("/cache/session").status_code == 404

    @pytest.mark.parametrize("method,path,body", [
        ("post", "/cache/k", {"data": "v"}),
        ("get", "/cache/k", None),
        ("get", "/cache", None),
        ("delete", "/cache/k", None),
        ("get", "/ttl/k", None),
    ])
    def test_store_unavailable_returns_503(self, client, store, method, path, body):
        """Store failures map to 503 with the shared error body."""
        error = CacheStoreError("op", "connection refused")

        async def failing_scan(pattern="*"):
            raise error
            yield  # pragma: no cover

        with patch.object(store, "set_with_ttl", new_callable=AsyncMock, side_effect=error), \
                patch.object(store, "get", new_callable=AsyncMock, side_effect=error), \
                patch.object(store, "delete", new_callable=AsyncMock, side_effect=error), \
                patch.object(store, "ttl", new_callable=AsyncMock, side_effect=error), \
                patch.object(store, "list_keys", failing_scan):
            kwargs = {"json": body} if body is not None else {}
            response = getattr(client, method)(path, **kwargs)

        assert response.status_code == 503
        data = response.json()
        assert data["code"] == "STORE_UNAVAILABLE"

    def test_request_id_propagates(self, client):
        """The request id header is echoed back."""
        response = client.get("/cache", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"

    def test_metrics_endpoint(self, client):
        """Prometheus metrics include cache counters."""
        client.get("/cache/missing")
        response = client.get("/metrics")
        assert response.status_code == 200
        assert "cache_misses_total" in response.text

    def test_http_metrics_labelled_by_route(self, client, cache_service):
        """Per-key paths share one series under the route template."""
        for i in range(3):
            client.get(f"/cache/k{i}")

        registry = cache_service.metrics.registry
        labels = {"method": "GET", "endpoint": "/cache/{key:path}", "status_code": "404"}
        assert registry.get_sample_value("http_requests_total", labels) == 3
        assert registry.get_sample_value(
            "http_requests_total",
            {"method": "GET", "endpoint": "/cache/k0", "status_code": "404"}
        ) is None

    def test_http_metrics_unmatched_path(self, client, cache_service):
        """Requests that match no route are grouped together."""
        client.get("/nowhere/at/all")

        registry = cache_service.metrics.registry
        labels = {"method": "GET", "endpoint": "unmatched", "status_code": "404"}
        assert registry.get_sample_value("http_requests_total", labels) == 1
