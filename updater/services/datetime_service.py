"""Timestamps for rows written to the store."""

from __future__ import annotations

from datetime import datetime, timezone


def now_utc() -> datetime:
    """Return the current UTC datetime."""
    return datetime.now(timezone.utc)


def format_iso(dt: datetime) -> str:
    """Format datetime as ISO 8601 text, assuming UTC for naive values."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.isoformat()


def timestamp() -> str:
    """Current time as stored in ``added_at`` columns (second precision)."""
    return format_iso(now_utc().replace(microsecond=0))
