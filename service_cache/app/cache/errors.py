"""
Error taxonomy for the cache layer.

A miss is not an error: the gateway reports it as ``None`` (or ``False``
for deletes). Everything below signals a failure the caller must see.
"""

from typing import Any, Dict, Optional

from shared.errors import ServiceException


class DecodeError(ValueError):
    """Stored text is not a valid encoded cache record."""


class CacheStoreError(Exception):
    """The backing key/value store could not be reached or failed."""

    def __init__(self, operation: str, message: str):
        self.operation = operation
        super().__init__(f"{operation}: {message}")


class StoreUnavailable(ServiceException):
    """Backing store unreachable or erroring."""

    status_code = 503

    def __init__(self, message: str = "Cache store unavailable", details: Optional[Dict[str, Any]] = None):
        super().__init__("STORE_UNAVAILABLE", message, details)


class CorruptRecord(ServiceException):
    """A stored record exists but cannot be decoded."""

    status_code = 500

    def __init__(self, key: str, reason: str):
        self.key = key
        super().__init__(
            "CORRUPT_RECORD",
            f"Cached value for key '{key}' could not be decoded",
            {"key": key, "reason": reason},
        )
