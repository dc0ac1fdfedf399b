"""Double-counting-safe duration aggregation over sets of intervals.

Intervals are half-open ``[start, end)``.  Overlapping time is counted
once, touching intervals contribute exactly their own spans, and
inverted intervals (``end < start``) contribute nothing.  Open intervals
(``end is None``) are evaluated against a caller-supplied ``now``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Protocol, Union

from timetree.core.time import resolve_now


class SupportsInterval(Protocol):
    @property
    def start(self) -> datetime: ...
    @property
    def end(self) -> datetime | None: ...


IntervalLike = Union[SupportsInterval, tuple[datetime, "datetime | None"]]


def _bounds(item: IntervalLike, now: datetime) -> tuple[datetime, datetime]:
    if isinstance(item, tuple):
        start, end = item
    else:
        start, end = item.start, item.end
    return start, (end if end is not None else now)


def interval_seconds(start: datetime, end: datetime | None, now: datetime | None = None) -> float:
    """Length of ``[start, end)`` in seconds, clipped at zero.

    Args:
        start: Interval start.
        end: Interval end, or ``None`` for an open interval.
        now: Reference time substituted for an open end.  Defaults to
            the current UTC time.

    Returns:
        Non-negative duration in seconds.
    """
    if end is None:
        end = resolve_now(now)
    return max(0.0, (end - start).total_seconds())


def merged_duration(intervals: Iterable[IntervalLike], *, now: datetime | None = None) -> float:
    """Total wall-clock seconds covered by *intervals*, counting overlap once.

    Sorts by start and sweeps with a running ``last_end``: an interval
    starting before ``last_end`` only adds its portion beyond
    ``last_end``.  Runs in O(n log n).

    Args:
        intervals: Records with ``start``/``end`` attributes, or
            ``(start, end)`` tuples.  ``end=None`` means open.
        now: Reference time for open intervals.  Defaults to the current
            UTC time (captured once for the whole call).

    Returns:
        Covered seconds; ``0.0`` for empty input.
    """
    ref = resolve_now(now)
    spans = [_bounds(item, ref) for item in intervals]
    spans = [(s, e) for s, e in spans if e > s]
    if not spans:
        return 0.0

    spans.sort(key=lambda span: span[0])

    total = 0.0
    last_end: datetime | None = None
    for start, end in spans:
        if last_end is not None and start < last_end:
            total += max(0.0, (end - max(last_end, start)).total_seconds())
        else:
            total += (end - start).total_seconds()
        last_end = end if last_end is None else max(last_end, end)

    return total


def sum_duration(intervals: Iterable[IntervalLike], *, now: datetime | None = None) -> float:
    """Naive per-interval sum (overlaps counted repeatedly).

    Useful for diagnostics: ``sum_duration - merged_duration`` is the
    amount of double-counted time in a set of records.
    """
    ref = resolve_now(now)
    return sum(interval_seconds(*_bounds(item, ref)) for item in intervals)
