"""
Date/time helpers shared by the backend services and the client flows.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Optional

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC (MongoDB returns naive UTC by default)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def is_expired(expires_at: datetime, now: Optional[datetime] = None) -> bool:
    """Return True once *now* is strictly past *expires_at*."""
    now = now or utc_now()
    return ensure_utc(now) > ensure_utc(expires_at)


def format_time_remaining(expires_at: datetime, now: Optional[datetime] = None) -> str:
    """Format the time left until *expires_at* as ``M:SS``.

    Returns ``"0:00"`` once the deadline has passed.

    >>> from datetime import timedelta
    >>> t0 = datetime(2024, 1, 1, tzinfo=timezone.utc)
    >>> format_time_remaining(t0 + timedelta(minutes=9, seconds=5), now=t0)
    '9:05'
    """
    now = now or utc_now()
    remaining = int((ensure_utc(expires_at) - ensure_utc(now)).total_seconds())
    if remaining <= 0:
        return "0:00"
    minutes, seconds = divmod(remaining, 60)
    return f"{minutes}:{seconds:02d}"
