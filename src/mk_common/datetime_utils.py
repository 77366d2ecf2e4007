"""UTC datetime utilities."""

from datetime import datetime, timedelta, timezone

HOUR = timedelta(hours=1)


def utc_now() -> datetime:
    """Return timezone-aware UTC now."""
    return datetime.now(timezone.utc)


def hours_between(start: datetime, end: datetime) -> float:
    """Fractional hours from start to end (negative if end precedes start)."""
    return (end - start) / HOUR


def isoformat_or_none(value: datetime | None) -> str | None:
    return value.isoformat() if value else None
