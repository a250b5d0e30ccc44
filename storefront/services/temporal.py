"""Date-window helpers shared by coupons and banners.

A window is ``[start, end]`` with both bounds inclusive. Every value passed in
is normalised to an aware UTC datetime first, because SQLite hands back naive
datetimes even for ``DateTime(timezone=True)`` columns.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

PENDING = "pending"
ACTIVE = "active"
EXPIRED = "expired"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def start_of_day(value: datetime) -> datetime:
    return as_utc(value).replace(hour=0, minute=0, second=0, microsecond=0)


def compute_end(start: datetime, duration_days: int) -> datetime:
    """Return ``start`` shifted by whole days (Jan 31 + 1 day is Feb 1)."""
    return as_utc(start) + timedelta(days=int(duration_days))


def classify(now: datetime, start: datetime, end: datetime) -> str:
    now = as_utc(now)
    if now < as_utc(start):
        return PENDING
    if now > as_utc(end):
        return EXPIRED
    return ACTIVE


def within_window(now: datetime, start: datetime, end: datetime) -> bool:
    return classify(now, start, end) == ACTIVE
