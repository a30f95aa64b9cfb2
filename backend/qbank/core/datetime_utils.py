"""
Datetime helpers shared by the practice engine and the storage adapters.
"""
import math
from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    """
    Return the current datetime in UTC.

    Use cases take a ``now`` callable defaulting to this function so tests can
    pin the clock.
    """
    return datetime.now(timezone.utc)


def ensure_timezone_aware(dt: Optional[datetime]) -> datetime:
    """
    Ensure a datetime object is timezone-aware (UTC).

    SQLite returns naive datetimes even for ``DateTime(timezone=True)`` columns.

    Raises:
        ValueError: If dt is None
    """
    if dt is None:
        raise ValueError("datetime cannot be None")
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def to_epoch_ms(dt: datetime) -> int:
    """Milliseconds since the Unix epoch, truncated."""
    return int(ensure_timezone_aware(dt).timestamp() * 1000)


def elapsed_whole_seconds(start: datetime, end: datetime) -> int:
    """
    Whole seconds between two instants, floored and never negative.

    Clock skew between writers can put ``end`` before ``start``; that counts
    as zero elapsed time.
    """
    delta = ensure_timezone_aware(end) - ensure_timezone_aware(start)
    return max(0, math.floor(delta.total_seconds()))


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 string produced by ``datetime.isoformat``."""
    if value is None:
        return None
    return ensure_timezone_aware(datetime.fromisoformat(value))
