"""Timestamp helpers: everything persisted is timezone-aware UTC ISO 8601."""

from __future__ import annotations

from datetime import UTC, datetime


def now_utc() -> datetime:
    """Return the current UTC datetime."""
    return datetime.now(UTC)


def format_iso(dt: datetime) -> str:
    """Format datetime as ISO 8601. Naive datetimes are taken to be UTC."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.isoformat()


def now_iso() -> str:
    """Return the current UTC time as ISO 8601."""
    return format_iso(now_utc())
