"""Time utilities. All timestamps are timezone-aware UTC."""

from datetime import datetime, timezone
from typing import Optional


def now_utc() -> datetime:
    """Return timezone-aware datetime in UTC."""
    return datetime.now(timezone.utc)


def to_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Convert a datetime to UTC (assumes UTC if naive, as stored by SQLite)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_utc_naive(dt: Optional[datetime]) -> Optional[datetime]:
    """Convert a datetime to naive UTC for columns without tz support."""
    dt_utc = to_utc(dt)
    return dt_utc.replace(tzinfo=None) if dt_utc else None
