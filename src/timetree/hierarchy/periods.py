"""Pluggable TimePeriod segmentation policies.

A policy splits the usage records beneath one manual-record group into
chronological periods and names each period.  The default,
:class:`SinglePeriod`, yields one period per manual record spanning the
record itself.  :class:`IdleGapPeriods` opens a new period whenever the
gap between one record's end and the next record's start reaches a
threshold (the same rule used for session detection).
:class:`DayBoundaryPeriods` splits at calendar-day boundaries and
:class:`DaypartPeriods` at fixed times of day ("Morning (9AM-12PM)").
"""

from __future__ import annotations

from datetime import datetime, timedelta
from itertools import groupby
from typing import Protocol, Sequence, runtime_checkable

from timetree.core.defaults import DAYPART_BUCKETS, DEFAULT_IDLE_GAP_SECONDS, OPEN_END_LABEL
from timetree.core.time import day_start, format_clock
from timetree.core.types import UsageRecord


@runtime_checkable
class PeriodPolicy(Protocol):
    """Strategy interface for splitting records into time periods.

    ``records`` arrive sorted by start time; implementations must return
    non-empty, chronologically ordered runs that together contain every
    input record exactly once.

    When ``spans_manual_record`` is true the builder stretches the first
    period back to the manual record's start and the last one forward to
    its end, and emits one empty period for a manual record with no
    usage.
    """

    name: str
    spans_manual_record: bool

    def segment(self, records: Sequence[UsageRecord], *, now: datetime) -> list[list[UsageRecord]]: ...

    def label(self, start: datetime, end: datetime | None) -> str: ...


def clock_range(start: datetime, end: datetime | None) -> str:
    """``"HH:MM - HH:MM"``, with an open end shown as ``now``."""
    return f"{format_clock(start, OPEN_END_LABEL)} - {format_clock(end, OPEN_END_LABEL)}"


class SinglePeriod:
    """One period containing every record."""

    name = "single"
    spans_manual_record = True

    def segment(self, records: Sequence[UsageRecord], *, now: datetime) -> list[list[UsageRecord]]:
        return [list(records)] if records else []

    def label(self, start: datetime, end: datetime | None) -> str:
        return clock_range(start, end)


class IdleGapPeriods:
    """Start a new period when the idle gap between records is >= *idle_gap_seconds*."""

    name = "idle-gap"
    spans_manual_record = False

    def __init__(self, idle_gap_seconds: float = DEFAULT_IDLE_GAP_SECONDS) -> None:
        if idle_gap_seconds <= 0:
            raise ValueError(f"idle_gap_seconds must be positive, got {idle_gap_seconds}")
        self.idle_gap_seconds = idle_gap_seconds

    def segment(self, records: Sequence[UsageRecord], *, now: datetime) -> list[list[UsageRecord]]:
        if not records:
            return []

        gap = timedelta(seconds=self.idle_gap_seconds)
        periods: list[list[UsageRecord]] = [[records[0]]]
        # Running max end, so a long record covering later short ones keeps them together.
        covered_until = max(records[0].start, records[0].end_or(now))

        for record in records[1:]:
            if record.start - covered_until >= gap:
                periods.append([record])
            else:
                periods[-1].append(record)
            covered_until = max(covered_until, record.end_or(now))

        return periods

    def label(self, start: datetime, end: datetime | None) -> str:
        return clock_range(start, end)


class DayBoundaryPeriods:
    """One period per calendar day of record start."""

    name = "day"
    spans_manual_record = False

    def segment(self, records: Sequence[UsageRecord], *, now: datetime) -> list[list[UsageRecord]]:
        return [list(group) for _, group in groupby(records, key=lambda r: day_start(r.start))]

    def label(self, start: datetime, end: datetime | None) -> str:
        return clock_range(start, end)


def daypart_of(ts: datetime) -> str:
    """Name of the time-of-day bucket containing *ts* (naive UTC hour)."""
    for first_hour, end_hour, name in DAYPART_BUCKETS:
        if first_hour <= ts.hour < end_hour:
            return name
    raise AssertionError(f"hour {ts.hour} not covered by DAYPART_BUCKETS")


class DaypartPeriods:
    """One period per (day, time-of-day bucket) of record start."""

    name = "daypart"
    spans_manual_record = False

    def segment(self, records: Sequence[UsageRecord], *, now: datetime) -> list[list[UsageRecord]]:
        return [
            list(group)
            for _, group in groupby(records, key=lambda r: (day_start(r.start), daypart_of(r.start)))
        ]

    def label(self, start: datetime, end: datetime | None) -> str:
        return daypart_of(start)


_POLICY_NAMES = [SinglePeriod.name, IdleGapPeriods.name, DayBoundaryPeriods.name, DaypartPeriods.name]


def policy_from_name(name: str, *, idle_gap_seconds: float = DEFAULT_IDLE_GAP_SECONDS) -> PeriodPolicy:
    """Look up a policy by its CLI/config name.

    Raises:
        ValueError: If *name* is not one of ``single``, ``idle-gap``,
            ``day``, ``daypart``.
    """
    if name == SinglePeriod.name:
        return SinglePeriod()
    if name == IdleGapPeriods.name:
        return IdleGapPeriods(idle_gap_seconds)
    if name == DayBoundaryPeriods.name:
        return DayBoundaryPeriods()
    if name == DaypartPeriods.name:
        return DaypartPeriods()
    raise ValueError(f"Unknown period policy {name!r}; must be one of {_POLICY_NAMES}")
