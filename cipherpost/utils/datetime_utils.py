"""
Datetime helpers.

All timestamps are stored and transmitted as UTC. Some backends (SQLite)
hand back naive datetimes, which are treated as UTC.
"""
from datetime import datetime, timezone


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime | None) -> datetime | None:
    """
    Normalize a datetime to aware UTC.

    Naive values are assumed to already be UTC; aware values are converted.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)
