from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from bson import ObjectId
from bson.errors import InvalidId


def to_ms(value: datetime) -> int:
    # naive datetimes coming back from Mongo are UTC
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp() * 1000)


def encode_cursor(value: datetime, oid: str) -> str:
    return f"{to_ms(value)}:{oid}"


def decode_cursor(cursor: str) -> Optional[Tuple[datetime, ObjectId]]:
    """Parse a ``ts_ms:oid`` cursor; malformed cursors are ignored."""
    try:
        ts_str, oid_hex = cursor.split(":", 1)
        ts = datetime.fromtimestamp(int(ts_str) / 1000.0, tz=timezone.utc)
        return ts, ObjectId(oid_hex)
    except (ValueError, InvalidId):
        return None


def before_cursor(field: str, cursor: Optional[str]) -> Dict[str, Any]:
    if not cursor:
        return {}
    parsed = decode_cursor(cursor)
    if parsed is None:
        return {}
    ts, oid = parsed
    return {"$or": [{field: {"$lt": ts}}, {field: ts, "_id": {"$lt": oid}}]}


def object_id(value: str) -> Optional[ObjectId]:
    return ObjectId(value) if ObjectId.is_valid(value) else None
