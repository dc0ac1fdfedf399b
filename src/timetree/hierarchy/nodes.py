"""Hierarchy node types: a closed tagged union of six group variants.

Every variant shares the aggregate fields (``key``, ``name``,
``children``, leaf tuples, ``total_seconds``, ``item_count``) and adds
its own level-specific metadata.  The ``level`` field is the pydantic
discriminator, so a serialized tree round-trips to the right classes and
``match`` statements over the variant classes stay exhaustive.

Nodes are frozen.  A tree is always rebuilt wholesale; ``key`` is the
only identity that carries across rebuilds and exists purely so a
presentation layer can correlate expand/collapse state.
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Annotated, Iterator, Literal, Union

from pydantic import BaseModel, Field

from timetree.core.types import ManualRecord, UsageRecord


class Level(StrEnum):
    """Hierarchy levels, top to bottom."""

    PROJECT = "project"
    SUBPROJECT = "subproject"
    MANUAL_RECORD = "manual_record"
    TIME_PERIOD = "time_period"
    APP_NAME = "app_name"
    APP_TITLE = "app_title"


class _GroupBase(BaseModel, frozen=True):
    key: str = Field(description="Opaque path key, stable across rebuilds of identical input.")
    name: str = Field(description="Display name.")
    children: tuple[HierarchyGroup, ...] = ()
    usage_records: tuple[UsageRecord, ...] = Field(default=(), description="Usage records attached directly to this node.")
    manual_records: tuple[ManualRecord, ...] = Field(default=(), description="Manual records attached directly to this node.")
    total_seconds: float = Field(ge=0, description="Merged duration of all descendant leaves.")
    item_count: int = Field(ge=0, description="Number of descendant leaves (not nodes).")

    def iter_usage_records(self) -> Iterator[UsageRecord]:
        """Yield every usage record in this subtree, own leaves first."""
        yield from self.usage_records
        for child in self.children:
            yield from child.iter_usage_records()

    def iter_manual_records(self) -> Iterator[ManualRecord]:
        """Yield every manual record in this subtree, own leaves first."""
        yield from self.manual_records
        for child in self.children:
            yield from child.iter_manual_records()

    def walk(self) -> Iterator[tuple[int, HierarchyGroup]]:
        """Depth-first pre-order traversal yielding ``(depth, node)``."""
        stack: list[tuple[int, HierarchyGroup]] = [(0, self)]  # type: ignore[list-item]
        while stack:
            depth, node = stack.pop()
            yield depth, node
            for child in reversed(node.children):
                stack.append((depth + 1, child))


class ProjectGroup(_GroupBase, frozen=True):
    level: Literal["project"] = "project"
    project_id: str | None = None
    color: str | None = None
    is_unassigned: bool = False


class SubprojectGroup(_GroupBase, frozen=True):
    level: Literal["subproject"] = "subproject"
    project_id: str
    parent_id: str
    color: str | None = None


class ManualRecordGroup(_GroupBase, frozen=True):
    level: Literal["manual_record"] = "manual_record"
    manual_record_id: str | None = Field(default=None, description="None for the 'No Manual Record' bucket.")


class TimePeriodGroup(_GroupBase, frozen=True):
    level: Literal["time_period"] = "time_period"
    start: datetime
    end: datetime | None = None


class AppNameGroup(_GroupBase, frozen=True):
    level: Literal["app_name"] = "app_name"
    app_id: str


class AppTitleGroup(_GroupBase, frozen=True):
    level: Literal["app_title"] = "app_title"
    title: str


HierarchyGroup = Annotated[
    Union[
        ProjectGroup,
        SubprojectGroup,
        ManualRecordGroup,
        TimePeriodGroup,
        AppNameGroup,
        AppTitleGroup,
    ],
    Field(discriminator="level"),
]

NODE_TYPES: dict[Level, type[_GroupBase]] = {
    Level.PROJECT: ProjectGroup,
    Level.SUBPROJECT: SubprojectGroup,
    Level.MANUAL_RECORD: ManualRecordGroup,
    Level.TIME_PERIOD: TimePeriodGroup,
    Level.APP_NAME: AppNameGroup,
    Level.APP_TITLE: AppTitleGroup,
}

for _cls in NODE_TYPES.values():
    _cls.model_rebuild()
