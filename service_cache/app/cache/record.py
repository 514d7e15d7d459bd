"""
Cache record model.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    """Current UTC time truncated to millisecond precision."""
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=(now.microsecond // 1000) * 1000)


@dataclass(frozen=True)
class CacheRecord:
    """A single cached entry: opaque payload plus optional annotation."""
    key: str
    data: str
    metadata: Optional[str]
    created_at: datetime
