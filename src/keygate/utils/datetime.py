"""Datetime helpers.

All timestamps are timezone-aware UTC. SQLite hands ``DateTime(timezone=True)``
columns back as naive values, so anything read from the store goes through
``as_utc`` before it is compared with ``utcnow()``.
"""

from __future__ import annotations

from datetime import date, datetime, timezone


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def utctoday() -> date:
    """Return the current UTC calendar day."""
    return utcnow().date()


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive values, convert aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
