"""
Text codec for cache records.

Records are stored as one JSON object per key::

    {"data": "...", "metadata": "..." | null, "createdAt": "2026-10-18T09:30:00.123Z"}

The key itself is the store key and is not repeated inside the blob.
"""

import json
from datetime import datetime, timezone
from typing import Any, Dict, Union

from .errors import DecodeError
from .record import CacheRecord


def format_timestamp(value: datetime) -> str:
    """Render a timestamp as ISO-8601 UTC with millisecond precision."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime:
    """Parse a timestamp produced by ``format_timestamp``."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def encode(record: CacheRecord) -> str:
    """Encode a record into its stored text form."""
    payload = {
        "data": record.data,
        "metadata": record.metadata,
        "createdAt": format_timestamp(record.created_at),
    }
    return json.dumps(payload, ensure_ascii=False, separators=(",", ":"))


def decode(key: str, text: Union[str, bytes]) -> CacheRecord:
    """Decode stored text into a record, raising DecodeError on malformed input.

    Raw bytes must be UTF-8.
    """
    if isinstance(text, bytes):
        try:
            text = text.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError(f"not valid UTF-8: {e}") from e

    try:
        payload = json.loads(text)
    except (TypeError, ValueError) as e:
        raise DecodeError(f"not valid JSON: {e}") from e

    if not isinstance(payload, dict):
        raise DecodeError(f"expected a JSON object, got {type(payload).__name__}")

    data = _require(payload, "data")
    if not isinstance(data, str):
        raise DecodeError("'data' must be a string")

    metadata = payload.get("metadata")
    if metadata is not None and not isinstance(metadata, str):
        raise DecodeError("'metadata' must be a string or null")

    created_at = _require(payload, "createdAt")
    if not isinstance(created_at, str):
        raise DecodeError("'createdAt' must be a timestamp string")
    try:
        created = parse_timestamp(created_at)
    except ValueError as e:
        raise DecodeError(f"'createdAt' is not a valid timestamp: {e}") from e

    return CacheRecord(key=key, data=data, metadata=metadata, created_at=created)


def _require(payload: Dict[str, Any], field: str) -> Any:
    if field not in payload:
        raise DecodeError(f"missing '{field}'")
    return payload[field]
