from __future__ import annotations

from datetime import datetime, timezone

from conftest import ts
from timetree.match.conflicts import find_manual_overlaps


class TestFindManualOverlaps:
    def test_single_pair(self, make_manual, now) -> None:
        records = [
            make_manual("m2", "09:30", "10:30", project_id="p2"),
            make_manual("m1", "09:00", "10:00", project_id="p1"),
        ]

        pairs = find_manual_overlaps(records, now=now)

        assert len(pairs) == 1
        assert (pairs[0].first_id, pairs[0].second_id) == ("m1", "m2")
        assert pairs[0].overlap_seconds == 1800.0
        assert pairs[0].same_project is False

    def test_touching_records_do_not_conflict(self, make_manual, now) -> None:
        records = [
            make_manual("m1", "09:00", "10:00"),
            make_manual("m2", "10:00", "11:00"),
        ]
        assert find_manual_overlaps(records, now=now) == []

    def test_long_record_overlaps_several(self, make_manual, now) -> None:
        records = [
            make_manual("outer", "09:00", "12:00", project_id="p1"),
            make_manual("a", "09:30", "10:00", project_id="p1"),
            make_manual("b", "10:30", "11:00", project_id="p1"),
        ]

        pairs = find_manual_overlaps(records, now=now)

        assert [(p.first_id, p.second_id) for p in pairs] == [("outer", "a"), ("outer", "b")]
        assert all(p.same_project for p in pairs)

    def test_running_timer_extends_to_now(self, make_manual) -> None:
        records = [
            make_manual("timer", "09:00", None),
            make_manual("later", "11:00", "11:30"),
        ]

        pairs = find_manual_overlaps(records, now=ts("11:15"))

        assert len(pairs) == 1
        assert pairs[0].overlap_seconds == 900.0

    def test_inverted_records_ignored(self, make_manual, now) -> None:
        records = [
            make_manual("bad", "10:00", "09:00"),
            make_manual("ok", "09:00", "10:00"),
        ]
        assert find_manual_overlaps(records, now=now) == []

    def test_empty(self, now) -> None:
        assert find_manual_overlaps([], now=now) == []

    def test_aware_now_with_running_timer(self, make_manual) -> None:
        records = [
            make_manual("timer", "09:00", None),
            make_manual("later", "11:00", "11:30"),
        ]

        pairs = find_manual_overlaps(records, now=datetime(2026, 3, 2, 11, 15, tzinfo=timezone.utc))

        assert [p.overlap_seconds for p in pairs] == [900.0]
