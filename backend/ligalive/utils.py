from collections.abc import Callable
from datetime import datetime, timezone

from bson import ObjectId
from bson.errors import InvalidId

from ligalive.errors import ValidationError

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """Make a naive datetime timezone-aware (UTC). Already-aware datetimes pass through."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def elapsed_ms(later: datetime, earlier: datetime) -> int:
    return int((ensure_utc(later) - ensure_utc(earlier)).total_seconds() * 1000)


def to_object_id(value, field: str = "id") -> ObjectId:
    """Parse a client-supplied id; raise ValidationError for malformed input."""
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        raise ValidationError(f"Invalid {field}.") from None
