"""
HTTP client for the cache endpoints.
"""

from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from shared.logging import get_logger
from shared.errors import ExternalServiceError
from ..models import CacheEntryResponse, CacheItemRequest, CacheItemResponse, CacheTTLResponse


class CacheApiClient:
    """Client for communicating with the Cache service."""

    def __init__(self, cache_service_url: str, timeout: float = 10.0):
        self.base_url = cache_service_url.rstrip('/')
        self.timeout = timeout
        self.logger = get_logger("cache.api_client")

    def _url(self, key: Optional[str] = None, resource: str = "cache") -> str:
        if key is None:
            return f"{self.base_url}/{resource}"
        return f"{self.base_url}/{resource}/{quote(key, safe='')}"

    async def set_cache(self, key: str, data: str, metadata: Optional[str] = None) -> CacheItemResponse:
        """Store a value under key."""
        body = CacheItemRequest(data=data, metadata=metadata).model_dump()
        response = await self._request("post", self._url(key), json=body)
        if response.status_code == 201:
            return CacheItemResponse.model_validate(response.json())
        raise self._unexpected(response)

    async def get_cache(self, key: str) -> Optional[CacheEntryResponse]:
        """Read the value under key; None when the key is absent."""
        response = await self._request("get", self._url(key))
        if response.status_code == 200:
            return CacheEntryResponse.model_validate(response.json())
        if response.status_code == 404:
            return None
        raise self._unexpected(response)

    async def list_cache(self, pattern: str = "*") -> List[CacheEntryResponse]:
        """List all enumerable entries."""
        response = await self._request("get", self._url(), params={"pattern": pattern})
        if response.status_code == 200:
            return [CacheEntryResponse.model_validate(item) for item in response.json()]
        raise self._unexpected(response)

    async def delete_cache(self, key: str) -> bool:
        """Delete key; False when it was already absent."""
        response = await self._request("delete", self._url(key))
        if response.status_code == 204:
            return True
        if response.status_code == 404:
            return False
        raise self._unexpected(response)

    async def get_ttl(self, key: str) -> Optional[int]:
        """Seconds until key expires; None when the key is absent."""
        response = await self._request("get", self._url(key, resource="ttl"))
        if response.status_code == 200:
            return CacheTTLResponse.model_validate(response.json()).ttl_seconds
        if response.status_code == 404:
            return None
        raise self._unexpected(response)

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                return await getattr(client, method)(url, **kwargs)
        except httpx.HTTPError as e:
            self.logger.error("Cache service HTTP error", method=method.upper(), url=url, error=str(e))
            raise ExternalServiceError(
                service="cache_service",
                message="Cache service unavailable",
                details={"http_error": str(e)}
            ) from e

    def _unexpected(self, response: httpx.Response) -> ExternalServiceError:
        details: Dict[str, Any] = {"status_code": response.status_code, "body": response.text}
        self.logger.error(
            "Cache service request failed",
            url=str(response.request.url),
            status_code=response.status_code
        )
        return ExternalServiceError(
            service="cache_service",
            message=f"Unexpected status {response.status_code}",
            details=details
        )
