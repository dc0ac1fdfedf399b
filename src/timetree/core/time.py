"""Timestamp normalization and day-boundary helpers.

All engine logic operates on naive UTC datetimes.  Timezone-aware inputs
are converted to UTC and stripped of their tzinfo so that comparisons
between records from different sources never raise.
"""

from __future__ import annotations

from datetime import datetime, time, timedelta, timezone


def to_naive_utc(ts: datetime) -> datetime:
    """Return *ts* as a naive UTC datetime.

    Naive inputs are assumed to already be UTC and are returned unchanged.
    """
    if ts.tzinfo is not None:
        return ts.astimezone(timezone.utc).replace(tzinfo=None)
    return ts


def utc_now() -> datetime:
    """Current wall-clock time as a naive UTC datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def day_start(ts: datetime) -> datetime:
    """Floor *ts* to midnight of its calendar day."""
    return datetime.combine(ts.date(), time.min)


def next_day_start(ts: datetime) -> datetime:
    """Midnight following the calendar day of *ts*."""
    return day_start(ts) + timedelta(days=1)


def format_clock(ts: datetime | None, open_label: str) -> str:
    """Render *ts* as ``HH:MM``; ``None`` renders as *open_label*."""
    if ts is None:
        return open_label
    return ts.strftime("%H:%M")


def resolve_now(now: datetime | None) -> datetime:
    """Reference time for open intervals: *now* as naive UTC, or the current time."""
    return to_naive_utc(now) if now is not None else utc_now()
