"""Shared fixtures for the timetree test suite."""

from __future__ import annotations

import datetime as dt
import logging
from pathlib import Path
from typing import Callable, Iterator

import pytest

from timetree.adapters.snapshot import Snapshot, write_snapshot
from timetree.core.types import ManualRecord, Project, UsageRecord

BASE_DAY = dt.datetime(2026, 3, 2)

_APP_NAMES = {
    "com.apple.dt.Xcode": "Xcode",
    "com.apple.Safari": "Safari",
    "com.tinyspeck.slackmacgap": "Slack",
}


def ts(value: str | dt.datetime) -> dt.datetime:
    """``"09:10"`` / ``"09:10:30"`` on the base day, or a datetime unchanged."""
    if isinstance(value, dt.datetime):
        return value
    parts = [int(p) for p in value.split(":")]
    return BASE_DAY.replace(hour=parts[0], minute=parts[1], second=parts[2] if len(parts) > 2 else 0)


@pytest.fixture(autouse=True)
def _reset_package_logger() -> Iterator[None]:
    """Undo CLI logging setup so caplog keeps seeing ``timetree`` records."""
    yield
    pkg_logger = logging.getLogger("timetree")
    pkg_logger.handlers.clear()
    pkg_logger.filters.clear()
    pkg_logger.setLevel(logging.NOTSET)
    pkg_logger.propagate = True


@pytest.fixture()
def now() -> dt.datetime:
    return ts("18:00")


@pytest.fixture()
def make_usage() -> Callable[..., UsageRecord]:
    def _make(
        record_id: str,
        start: str | dt.datetime,
        end: str | dt.datetime | None,
        *,
        app_id: str = "com.apple.dt.Xcode",
        app_name: str | None = None,
        window_title: str | None = None,
        app_title: str | None = None,
    ) -> UsageRecord:
        return UsageRecord(
            id=record_id,
            app_id=app_id,
            app_name=app_name or _APP_NAMES.get(app_id, app_id),
            window_title=window_title,
            app_title=app_title,
            start=ts(start),
            end=ts(end) if end is not None else None,
        )

    return _make


@pytest.fixture()
def make_manual() -> Callable[..., ManualRecord]:
    def _make(
        record_id: str,
        start: str | dt.datetime,
        end: str | dt.datetime | None,
        *,
        project_id: str | None = None,
        title: str | None = None,
    ) -> ManualRecord:
        return ManualRecord(
            id=record_id,
            title=title or record_id,
            project_id=project_id,
            start=ts(start),
            end=ts(end) if end is not None else None,
        )

    return _make


@pytest.fixture()
def projects() -> list[Project]:
    """Alpha (with subproject Alpha Sub) and Beta."""
    return [
        Project(id="p2", name="Beta", sort_order=1),
        Project(id="p1a", name="Alpha Sub", parent_id="p1"),
        Project(id="p1", name="Alpha", sort_order=0),
    ]


@pytest.fixture()
def scenario(
    make_usage: Callable[..., UsageRecord],
    make_manual: Callable[..., ManualRecord],
    projects: list[Project],
) -> tuple[list[UsageRecord], list[ManualRecord], list[Project]]:
    """One day of records exercising projects, subprojects, and unassigned time.

    Expected tree (totals in minutes)::

        Alpha 120
          Alpha Sub 60
            Review 60 -> Safari / Docs (u3)
          Design 60 -> Xcode / main.swift (u1, u2)
        Unassigned 45
          Standup 15 -> Slack / general (u5)
          No Manual Record 30 -> Slack / general (u4)
    """
    manual = [
        make_manual("m1", "09:00", "10:00", project_id="p1", title="Design"),
        make_manual("m2", "10:00", "11:00", project_id="p1a", title="Review"),
        make_manual("m3", "11:00", "11:15", title="Standup"),
    ]
    usage = [
        make_usage("u1", "09:05", "09:35", window_title="main.swift"),
        make_usage("u2", "09:40", "09:50", window_title="main.swift"),
        make_usage("u3", "10:10", "10:40", app_id="com.apple.Safari", window_title="Docs"),
        make_usage("u4", "12:00", "12:30", app_id="com.tinyspeck.slackmacgap", window_title="general"),
        make_usage("u5", "11:00", "11:10", app_id="com.tinyspeck.slackmacgap", window_title="general"),
    ]
    return usage, manual, projects


@pytest.fixture()
def snapshot_file(
    tmp_path: Path,
    scenario: tuple[list[UsageRecord], list[ManualRecord], list[Project]],
) -> Path:
    usage, manual, projects = scenario
    return write_snapshot(
        Snapshot(usage_records=usage, manual_records=manual, projects=projects),
        tmp_path / "snapshot.json",
    )
