"""UTC-everywhere time handling, plus the epoch-millisecond helpers used on the wire."""

from datetime import datetime, timedelta, timezone

DAY = timedelta(days=1)


def now_utc() -> datetime:
    """
    Current time in UTC.

    Use this instead of datetime.now() everywhere.
    """
    return datetime.now(timezone.utc)


def to_utc(dt: datetime) -> datetime:
    """
    Convert a datetime to UTC.

    Raises ValueError if datetime is naive (no timezone).
    """
    if dt.tzinfo is None:
        raise ValueError(
            "Cannot convert naive datetime to UTC. Datetime must be timezone-aware."
        )
    return dt.astimezone(timezone.utc)


def parse_iso(iso_string: str) -> datetime:
    """
    Parse ISO 8601 datetime string to UTC datetime.

    Raises ValueError if string has no timezone info.
    """
    dt = datetime.fromisoformat(iso_string)
    if dt.tzinfo is None:
        raise ValueError(
            "Cannot parse naive datetime string. "
            "Include timezone offset (e.g., 'Z' or '+00:00')."
        )
    return to_utc(dt)


def to_epoch_millis(dt: datetime) -> int:
    """Milliseconds since the Unix epoch. Raises ValueError on naive datetimes."""
    return int(to_utc(dt).timestamp() * 1000)


def from_epoch_millis(millis: int) -> datetime:
    """UTC datetime for a millisecond epoch timestamp."""
    return datetime.fromtimestamp(millis / 1000, tz=timezone.utc)


def now_millis() -> int:
    """Current time as epoch milliseconds."""
    return to_epoch_millis(now_utc())
