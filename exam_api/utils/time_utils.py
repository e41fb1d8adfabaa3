"""Time utilities."""
import math
from datetime import datetime, timezone


def utc_now() -> datetime:
    """Get current UTC time as an aware datetime."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes (SQLite drops tzinfo) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def elapsed_seconds(start: datetime, now: datetime) -> int:
    """Whole seconds elapsed since start, never negative."""
    delta = (as_utc(now) - as_utc(start)).total_seconds()
    return max(0, math.floor(delta))

