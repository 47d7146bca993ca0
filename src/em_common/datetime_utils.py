"""UTC datetime utilities."""

from datetime import datetime, timedelta, timezone


def utc_now() -> datetime:
    """Return timezone-aware UTC now."""
    return datetime.now(timezone.utc)


def window_start(minutes: int, now: datetime | None = None) -> datetime:
    """Start of a trailing window of ``minutes`` ending at ``now``."""
    return (now or utc_now()) - timedelta(minutes=minutes)


def minute_bucket(dt: datetime) -> datetime:
    """Truncate to the minute (seconds and microseconds zeroed)."""
    return dt.replace(second=0, microsecond=0)
