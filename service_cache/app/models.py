"""
Request and response models for the cache endpoints.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from .cache.codec import format_timestamp
from .cache.record import CacheRecord


class CacheItemRequest(BaseModel):
    """Body of a cache write."""
    data: str = Field(..., description="Opaque payload")
    metadata: Optional[str] = Field(None, description="Caller-defined annotation")


class CacheItemValue(BaseModel):
    """Stored value as returned to callers."""
    model_config = ConfigDict(populate_by_name=True)

    data: str = Field(..., description="Opaque payload")
    metadata: Optional[str] = Field(None, description="Caller-defined annotation")
    created_at: datetime = Field(..., alias="createdAt", description="Server write time (UTC)")

    @field_serializer("created_at")
    def _serialize_created_at(self, value: datetime) -> str:
        return format_timestamp(value)

    @classmethod
    def from_record(cls, record: CacheRecord) -> "CacheItemValue":
        return cls(data=record.data, metadata=record.metadata, created_at=record.created_at)


class CacheEntryResponse(BaseModel):
    """A key together with its stored value."""
    key: str
    value: CacheItemValue

    @classmethod
    def from_record(cls, record: CacheRecord) -> "CacheEntryResponse":
        return cls(key=record.key, value=CacheItemValue.from_record(record))


class CacheItemResponse(CacheEntryResponse):
    """Response to a cache write."""
    model_config = ConfigDict(populate_by_name=True)

    expires_in: str = Field(..., alias="expiresIn", description="TTL applied to the record")


class CacheTTLResponse(BaseModel):
    """Remaining lifetime of a cached key."""
    model_config = ConfigDict(populate_by_name=True)

    key: str
    ttl_seconds: int = Field(..., alias="ttlSeconds", description="Seconds until expiry, -1 if none")
