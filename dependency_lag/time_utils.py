"""
Shared datetime helpers.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional


SECONDS_PER_DAY = 86400.0
DAYS_PER_YEAR = 365.25


def ensure_utc(dt: datetime) -> datetime:
    """Return a timezone-aware UTC datetime."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_timestamp(value: str) -> Optional[datetime]:
    """Parse an ISO 8601 timestamp and normalize it to UTC."""
    if not value or not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    return ensure_utc(parsed)


def from_epoch(seconds: int) -> datetime:
    """Convert a POSIX timestamp (as git reports it) to a UTC datetime."""
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


def days_between(earlier: datetime, later: datetime) -> float:
    """Fractional days from ``earlier`` to ``later`` (negative if reversed)."""
    delta = ensure_utc(later) - ensure_utc(earlier)
    return delta.total_seconds() / SECONDS_PER_DAY


def lookback_start(days: int, now: Optional[datetime] = None) -> datetime:
    """Start of a lookback window ending at ``now``."""
    reference = ensure_utc(now) if now is not None else datetime.now(timezone.utc)
    return reference - timedelta(days=days)
