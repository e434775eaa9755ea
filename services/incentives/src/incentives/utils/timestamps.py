"""Timestamp helpers (UTC with timezone)."""

from datetime import datetime, timezone


def to_utc_datetime(ts: int) -> datetime:
    """Convert a unix timestamp to a timezone-aware UTC datetime."""
    return datetime.fromtimestamp(ts, tz=timezone.utc)
