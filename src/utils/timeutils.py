"""
Time helpers - every timestamp in the worker is timezone-aware UTC
"""

from datetime import datetime, timedelta, UTC
from typing import Optional


def utcnow() -> datetime:
    """Current time, timezone-aware UTC"""
    return datetime.now(UTC)


def days_from_now(days: int, now: Optional[datetime] = None) -> datetime:
    """Timestamp `days` days after now (or after the given `now`)"""
    return (now or utcnow()) + timedelta(days=days)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Attach UTC to naive datetimes

    SQLite returns DateTime(timezone=True) columns as naive values; they
    are stored as UTC, so attaching the zone is lossless.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def parse_iso8601(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 timestamp as returned by CoinMarketCap

    Accepts the trailing "Z" form ("2024-05-01T12:00:00.000Z").
    Returns None for empty input.
    """
    if not value:
        return None
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return as_utc(datetime.fromisoformat(value))
