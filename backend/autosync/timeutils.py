from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalise a datetime to timezone-aware UTC.

    MongoDB stores datetimes as naive UTC, so anything read back without
    tz_aware codec options is treated as UTC rather than local time.
    """
    if value is None:
        return None
    if value.tzinfo is None or value.utcoffset() is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(value) -> Optional[datetime]:
    """Parse an ISO 8601 string (``Z`` suffix allowed) or datetime into UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    if not isinstance(value, str):
        raise ValueError(f"Unsupported timestamp value: {value!r}")
    return ensure_utc(datetime.fromisoformat(value.strip().replace("Z", "+00:00")))


def naive_utc(value: datetime) -> datetime:
    """UTC wall time without tzinfo, the form MongoDB stores and pymongo reads as UTC."""
    return ensure_utc(value).replace(tzinfo=None)
