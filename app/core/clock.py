from __future__ import annotations

from datetime import datetime, timedelta, timezone

DAY = timedelta(days=1)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(dt: datetime) -> datetime:
    """
    Normalize to aware UTC.
    Naive values are treated as UTC (SQLite hands back naive datetimes).
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def day_window(now: datetime) -> tuple[datetime, datetime]:
    """[start of the UTC calendar day containing now, +24h)"""
    start = as_utc(now).replace(hour=0, minute=0, second=0, microsecond=0)
    return start, start + DAY
