"""JSON snapshot files as a :class:`~timetree.core.types.RecordSource`.

A snapshot is one materialized set of engine inputs::

    {
      "usage_records": [{"id": "...", "app_id": "...", "app_name": "...",
                         "start": "2026-03-02T09:10:00Z", "end": "..."}],
      "manual_records": [{"id": "...", "title": "...", "project_id": "...",
                          "start": "...", "end": "..."}],
      "projects": [{"id": "...", "name": "...", "parent_id": null,
                    "sort_order": 0}]
    }

All three keys are optional and default to empty lists.  Records are
validated with the pydantic models on load; range queries return every
record overlapping the requested window.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Sequence, TypeVar

from pydantic import BaseModel, Field

from timetree.core.time import resolve_now
from timetree.core.types import DateRange, ManualRecord, Project, UsageRecord

logger = logging.getLogger(__name__)

_R = TypeVar("_R", UsageRecord, ManualRecord)


class Snapshot(BaseModel, frozen=True):
    """The on-disk snapshot document."""

    usage_records: list[UsageRecord] = Field(default_factory=list)
    manual_records: list[ManualRecord] = Field(default_factory=list)
    projects: list[Project] = Field(default_factory=list)


def _in_range(records: Sequence[_R], date_range: DateRange | None, now: datetime) -> list[_R]:
    if date_range is None:
        return list(records)
    return [
        r for r in records
        if r.start < date_range.end and r.end_or(now) > date_range.start
    ]


class SnapshotSource:
    """Serve records from an in-memory :class:`Snapshot`.

    Open records are treated as extending to *now* when filtering by range.
    """

    def __init__(self, snapshot: Snapshot, *, now: datetime | None = None) -> None:
        self._snapshot = snapshot
        self._now = now

    @classmethod
    def from_path(cls, path: Path, *, now: datetime | None = None) -> SnapshotSource:
        """Load and validate a snapshot file.

        Raises:
            FileNotFoundError: If *path* does not exist.
            pydantic.ValidationError: If the document does not match the
                snapshot schema.
        """
        snapshot = load_snapshot(path)
        return cls(snapshot, now=now)

    @property
    def snapshot(self) -> Snapshot:
        return self._snapshot

    def fetch_usage_records(self, date_range: DateRange | None = None) -> list[UsageRecord]:
        return _in_range(self._snapshot.usage_records, date_range, resolve_now(self._now))

    def fetch_manual_records(self, date_range: DateRange | None = None) -> list[ManualRecord]:
        return _in_range(self._snapshot.manual_records, date_range, resolve_now(self._now))

    def fetch_projects(self) -> list[Project]:
        return list(self._snapshot.projects)


def load_snapshot(path: Path) -> Snapshot:
    """Read and validate a snapshot JSON file."""
    raw = json.loads(path.read_text(encoding="utf-8"))
    snapshot = Snapshot.model_validate(raw)
    logger.info(
        "Loaded snapshot %s (%d usage, %d manual, %d projects)",
        path,
        len(snapshot.usage_records),
        len(snapshot.manual_records),
        len(snapshot.projects),
    )
    return snapshot


def write_snapshot(snapshot: Snapshot, path: Path) -> Path:
    """Serialize *snapshot* to *path* as JSON.

    Returns:
        The *path* that was written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(snapshot.model_dump_json(indent=2))
    return path
