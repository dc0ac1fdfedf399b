from __future__ import annotations

import datetime as dt

import pytest

from timetree.hierarchy.periods import (
    DayBoundaryPeriods,
    DaypartPeriods,
    IdleGapPeriods,
    PeriodPolicy,
    SinglePeriod,
    daypart_of,
    policy_from_name,
)


def _ids(periods) -> list[list[str]]:
    return [[r.id for r in period] for period in periods]


class TestSinglePeriod:
    def test_empty(self, now) -> None:
        assert SinglePeriod().segment([], now=now) == []

    def test_everything_in_one_period(self, make_usage, now) -> None:
        records = [make_usage("a", "09:00", "09:10"), make_usage("b", "15:00", "15:10")]
        assert _ids(SinglePeriod().segment(records, now=now)) == [["a", "b"]]


class TestIdleGapPeriods:
    def test_splits_on_long_gap(self, make_usage, now) -> None:
        records = [
            make_usage("a", "09:00", "09:10"),
            make_usage("b", "09:12", "09:20"),
            make_usage("c", "09:30", "09:40"),
        ]
        periods = IdleGapPeriods(300).segment(records, now=now)
        assert _ids(periods) == [["a", "b"], ["c"]]

    def test_gap_equal_to_threshold_splits(self, make_usage, now) -> None:
        records = [make_usage("a", "09:00", "09:10"), make_usage("b", "09:15", "09:20")]
        assert _ids(IdleGapPeriods(300).segment(records, now=now)) == [["a"], ["b"]]

    def test_long_record_keeps_covered_records_together(self, make_usage, now) -> None:
        records = [
            make_usage("long", "09:00", "10:00"),
            make_usage("short", "09:05", "09:10"),
            make_usage("inside", "09:20", "09:30"),
        ]
        assert _ids(IdleGapPeriods(300).segment(records, now=now)) == [["long", "short", "inside"]]

    def test_open_record_extends_to_now(self, make_usage) -> None:
        records = [make_usage("open", "09:00", None), make_usage("b", "09:30", "09:40")]
        periods = IdleGapPeriods(300).segment(records, now=dt.datetime(2026, 3, 2, 10, 0))
        assert _ids(periods) == [["open", "b"]]

    def test_rejects_non_positive_gap(self) -> None:
        with pytest.raises(ValueError, match="positive"):
            IdleGapPeriods(0)


class TestDayBoundaryPeriods:
    def test_one_period_per_day(self, make_usage, now) -> None:
        records = [
            make_usage("a", "09:00", "09:10"),
            make_usage("b", "15:00", "15:10"),
            make_usage("c", dt.datetime(2026, 3, 3, 8, 0), dt.datetime(2026, 3, 3, 8, 30)),
        ]
        assert _ids(DayBoundaryPeriods().segment(records, now=now)) == [["a", "b"], ["c"]]


class TestDaypartPeriods:
    @pytest.mark.parametrize(
        "hour, expected",
        [
            (0, "Late Night (12AM-6AM)"),
            (5, "Late Night (12AM-6AM)"),
            (6, "Early Morning (6AM-9AM)"),
            (9, "Morning (9AM-12PM)"),
            (12, "Lunch Time (12PM-2PM)"),
            (14, "Afternoon (2PM-5PM)"),
            (17, "Evening (5PM-8PM)"),
            (20, "Night (8PM-12AM)"),
            (23, "Night (8PM-12AM)"),
        ],
    )
    def test_bucket_boundaries(self, hour: int, expected: str) -> None:
        assert daypart_of(dt.datetime(2026, 3, 2, hour, 0)) == expected

    def test_groups_by_bucket_of_start(self, make_usage, now) -> None:
        records = [
            make_usage("a", "08:50", "09:30"),
            make_usage("b", "09:40", "09:50"),
            make_usage("c", "11:55", "12:20"),
            make_usage("d", "12:30", "12:40"),
        ]
        assert _ids(DaypartPeriods().segment(records, now=now)) == [["a"], ["b", "c"], ["d"]]

    def test_same_bucket_on_different_days_stays_apart(self, make_usage, now) -> None:
        records = [
            make_usage("a", "09:00", "09:10"),
            make_usage("b", dt.datetime(2026, 3, 3, 9, 0), dt.datetime(2026, 3, 3, 9, 10)),
        ]
        assert _ids(DaypartPeriods().segment(records, now=now)) == [["a"], ["b"]]

    def test_label_is_bucket_name(self) -> None:
        start = dt.datetime(2026, 3, 2, 15, 30)
        assert DaypartPeriods().label(start, None) == "Afternoon (2PM-5PM)"


class TestLabels:
    def test_clock_range(self) -> None:
        start = dt.datetime(2026, 3, 2, 9, 0)
        end = dt.datetime(2026, 3, 2, 10, 30)
        assert SinglePeriod().label(start, end) == "09:00 - 10:30"
        assert IdleGapPeriods().label(start, None) == "09:00 - now"

    def test_only_single_period_spans_manual_record(self) -> None:
        assert SinglePeriod.spans_manual_record is True
        assert not any(
            cls.spans_manual_record for cls in (IdleGapPeriods, DayBoundaryPeriods, DaypartPeriods)
        )


class TestPolicyFromName:
    @pytest.mark.parametrize(
        "name, cls",
        [
            ("single", SinglePeriod),
            ("idle-gap", IdleGapPeriods),
            ("day", DayBoundaryPeriods),
            ("daypart", DaypartPeriods),
        ],
    )
    def test_known_names(self, name: str, cls: type) -> None:
        policy = policy_from_name(name)
        assert isinstance(policy, cls)
        assert isinstance(policy, PeriodPolicy)
        assert policy.name == name

    def test_idle_gap_threshold_passed_through(self) -> None:
        policy = policy_from_name("idle-gap", idle_gap_seconds=60)
        assert policy.idle_gap_seconds == 60

    def test_unknown_name(self) -> None:
        with pytest.raises(ValueError, match="Unknown period policy"):
            policy_from_name("weekly")
