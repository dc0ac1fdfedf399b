"""Tests for the ActivityWatch import adapter.

Covers:
- AW export JSON parsing (parse_aw_export)
- App name normalization (normalize_app_id)
- Feeding imported records into the hierarchy builder
"""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path

import pytest

from timetree.adapters.activitywatch import normalize_app_id, parse_aw_export
from timetree.hierarchy.builder import build_hierarchy


@pytest.fixture()
def aw_export_file(tmp_path: Path) -> Path:
    export = {
        "buckets": {
            "aw-watcher-window_testhost": {
                "id": "aw-watcher-window_testhost",
                "type": "currentwindow",
                "client": "aw-watcher-window",
                "hostname": "testhost",
                "events": [
                    {"timestamp": "2026-03-02T10:01:00Z", "duration": 45.0,
                     "data": {"app": "Code", "title": "main.py"}},
                    {"timestamp": "2026-03-02T10:00:00Z", "duration": 30.0,
                     "data": {"app": "Firefox", "title": "GitHub"}},
                    {"timestamp": "2026-03-02T10:02:00Z", "duration": 0.0,
                     "data": {"app": "Terminal", "title": "bash"}},
                    {"timestamp": "2026-03-02T10:03:00+01:00", "duration": 60.0,
                     "data": {"app": "My Custom App"}},
                ],
            },
            "aw-watcher-afk_testhost": {
                "id": "aw-watcher-afk_testhost",
                "type": "afkstatus",
                "events": [
                    {"timestamp": "2026-03-02T10:00:00Z", "duration": 600.0,
                     "data": {"status": "not-afk"}},
                ],
            },
        }
    }
    path = tmp_path / "aw-export.json"
    path.write_text(json.dumps(export))
    return path


# ---------------------------------------------------------------------------
# normalize_app_id
# ---------------------------------------------------------------------------


class TestNormalizeAppId:
    def test_known_app(self) -> None:
        assert normalize_app_id("Firefox") == "org.mozilla.firefox"

    def test_case_insensitive(self) -> None:
        assert normalize_app_id("GOOGLE CHROME") == normalize_app_id("google chrome")

    def test_unknown_app_fallback(self) -> None:
        assert normalize_app_id("My Custom App") == "aw.my-custom-app"

    def test_blank_name(self) -> None:
        assert normalize_app_id("  ") == "aw.unknown"


# ---------------------------------------------------------------------------
# parse_aw_export
# ---------------------------------------------------------------------------


class TestParseAwExport:
    def test_only_window_events_with_duration(self, aw_export_file: Path) -> None:
        records = parse_aw_export(aw_export_file)
        assert [r.app_name for r in records] == ["My Custom App", "Firefox", "Code"]

    def test_start_end_from_timestamp_and_duration(self, aw_export_file: Path) -> None:
        firefox = next(r for r in parse_aw_export(aw_export_file) if r.app_name == "Firefox")
        assert firefox.start == datetime(2026, 3, 2, 10, 0, 0)
        assert firefox.end == datetime(2026, 3, 2, 10, 0, 30)
        assert firefox.window_title == "GitHub"
        assert firefox.app_id == "org.mozilla.firefox"

    def test_offsets_normalized_to_utc(self, aw_export_file: Path) -> None:
        custom = parse_aw_export(aw_export_file)[0]
        assert custom.start == datetime(2026, 3, 2, 9, 3, 0)
        assert custom.window_title is None
        assert custom.resolved_title == "My Custom App"

    def test_ids_are_deterministic_and_unique(self, aw_export_file: Path) -> None:
        first = [r.id for r in parse_aw_export(aw_export_file)]
        second = [r.id for r in parse_aw_export(aw_export_file)]
        assert first == second
        assert len(set(first)) == len(first)

    def test_flat_bucket_mapping(self, tmp_path: Path) -> None:
        path = tmp_path / "flat.json"
        path.write_text(json.dumps({
            "b1": {"type": "currentwindow", "events": [
                {"timestamp": "2026-03-02T10:00:00", "duration": 10, "data": {"app": "Slack", "title": "general"}},
            ]},
        }))
        records = parse_aw_export(path)
        assert len(records) == 1
        assert records[0].app_id == "com.tinyspeck.slackmacgap"

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            parse_aw_export(tmp_path / "missing.json")

    def test_imported_records_build_a_tree(self, aw_export_file: Path) -> None:
        records = parse_aw_export(aw_export_file)
        tree = build_hierarchy(records, [], [], now=datetime(2026, 3, 2, 12, 0))
        assert [g.name for g in tree] == ["Unassigned"]
        assert tree[0].item_count == 3
        assert tree[0].total_seconds == 135.0
