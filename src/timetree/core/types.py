"""Core data contracts: usage records, manual records, projects, and the record-source protocol."""

from __future__ import annotations

from datetime import datetime
from typing import Protocol, Sequence, runtime_checkable

from pydantic import BaseModel, Field, field_validator, model_validator

from timetree.core.defaults import DEFAULT_PROJECT_COLOR
from timetree.core.time import to_naive_utc


class _IntervalModel(BaseModel, frozen=True):
    """Shared ``start`` / optional ``end`` shape.

    ``end=None`` means the interval is still open (running).  Inverted
    intervals (``end < start``) are accepted here on purpose: upstream
    validation belongs to the record producer, and the engine treats such
    intervals as zero-length instead of failing.
    """

    start: datetime = Field(description="Interval start (UTC, inclusive).")
    end: datetime | None = Field(default=None, description="Interval end (UTC, exclusive); None while open.")

    @field_validator("start", "end")
    @classmethod
    def _normalize_ts(cls, value: datetime | None) -> datetime | None:
        if value is None:
            return None
        return to_naive_utc(value)

    @property
    def is_open(self) -> bool:
        return self.end is None

    def end_or(self, now: datetime) -> datetime:
        """Effective end, substituting *now* for an open interval."""
        return self.end if self.end is not None else now


class UsageRecord(_IntervalModel, frozen=True):
    """An automatically captured interval of application usage.

    Produced by the focus observer (or an importer such as
    :func:`~timetree.adapters.activitywatch.parse_aw_export`).  At most
    one record is open system-wide; that is the producer's invariant and
    is only reported, never enforced, by this package.
    """

    id: str = Field(description="Stable record identifier.")
    app_id: str = Field(description="Stable application identity, e.g. 'com.apple.dt.Xcode'.")
    app_name: str = Field(description="Application display name.")
    app_title: str | None = Field(default=None, description="Application-level title, if any.")
    window_title: str | None = Field(default=None, description="Window or document title, if any.")
    icon: str | None = Field(default=None, description="Icon reference for the presentation layer.")

    @property
    def resolved_title(self) -> str:
        """Best available title: window title, else app title, else app name."""
        if self.window_title:
            return self.window_title
        if self.app_title:
            return self.app_title
        return self.app_name


class ManualRecord(_IntervalModel, frozen=True):
    """A user-authored or timer-derived interval, optionally tied to a project.

    ``end=None`` marks a timer that is still running.
    """

    id: str = Field(description="Stable record identifier.")
    title: str = Field(description="User-facing title.")
    notes: str | None = Field(default=None, description="Free-form notes.")
    project_id: str | None = Field(default=None, description="Referenced project id, may dangle.")


class Project(BaseModel, frozen=True):
    """A node in the user-defined project forest (read-only here)."""

    id: str
    name: str
    color: str = DEFAULT_PROJECT_COLOR
    parent_id: str | None = None
    sort_order: int = 0


class DateRange(BaseModel, frozen=True):
    """Query window for :class:`RecordSource` lookups."""

    start: datetime
    end: datetime

    @field_validator("start", "end")
    @classmethod
    def _normalize_ts(cls, value: datetime) -> datetime:
        return to_naive_utc(value)

    @model_validator(mode="after")
    def _check_order(self) -> DateRange:
        if self.end <= self.start:
            raise ValueError(
                f"end ({self.end}) must be strictly after start ({self.start})"
            )
        return self


@runtime_checkable
class RecordSource(Protocol):
    """Read-only provider of engine inputs.

    Implementations return fully materialized collections; the engine
    never performs I/O itself.
    """

    def fetch_usage_records(self, date_range: DateRange | None = None) -> Sequence[UsageRecord]: ...

    def fetch_manual_records(self, date_range: DateRange | None = None) -> Sequence[ManualRecord]: ...

    def fetch_projects(self) -> Sequence[Project]: ...
