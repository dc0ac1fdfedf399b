"""Six-level hierarchy construction from matched usage and manual records.

Levels, top to bottom::

    Project -> Subproject* -> ManualRecord -> TimePeriod -> AppName -> AppTitle

The whole tree is produced by one recursive function, :func:`_build_level`,
parameterized by the current level and the bucket of leaves still to be
partitioned; ``AppTitle`` is the base case.  Every node stores its merged
duration (see :func:`~timetree.aggregate.duration.merged_duration`) over
the union of all leaves beneath it, and its leaf count.

Ordering rules:

* Project: catalog order (``sort_order``, name, id); ``Unassigned`` last.
* Subproject: catalog order, before the parent's own manual-record groups.
* ManualRecord: start ascending (then id); ``No Manual Record`` last.
* TimePeriod: chronological, as produced by the period policy.
* AppName / AppTitle: duration descending, then case-insensitive name, then key.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Sequence

from timetree.aggregate.duration import merged_duration
from timetree.core.defaults import (
    KEY_SEPARATOR,
    NO_MANUAL_RECORD_KEY,
    NO_MANUAL_RECORD_NAME,
    UNASSIGNED_PROJECT_KEY,
    UNASSIGNED_PROJECT_NAME,
)
from timetree.core.time import resolve_now
from timetree.core.types import DateRange, ManualRecord, Project, RecordSource, UsageRecord
from timetree.core.validation import ContractViolationError, require_collection
from timetree.hierarchy.nodes import (
    AppNameGroup,
    AppTitleGroup,
    HierarchyGroup,
    Level,
    ManualRecordGroup,
    ProjectGroup,
    SubprojectGroup,
    TimePeriodGroup,
    _GroupBase,
)
from timetree.hierarchy.periods import PeriodPolicy, SinglePeriod
from timetree.match.overlap import MatchResult, match_usage_records

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Leaf:
    """A usage record and the manual record that won it (if any)."""

    usage: UsageRecord
    manual: ManualRecord | None
    project_id: str | None


@dataclass(frozen=True)
class _Bucket:
    leaves: tuple[_Leaf, ...] = ()
    manual_records: tuple[ManualRecord, ...] = ()


@dataclass
class _Context:
    catalog: dict[str, Project]
    parents: dict[str, str]
    children_of: dict[str | None, list[Project]]
    period_policy: PeriodPolicy
    now: datetime
    _lineage_cache: dict[str, list[str]] = field(default_factory=dict)

    def lineage(self, project_id: str) -> list[str]:
        """Project ids from the root down to *project_id* (inclusive)."""
        cached = self._lineage_cache.get(project_id)
        if cached is not None:
            return cached
        chain = [project_id]
        cur = project_id
        while cur in self.parents:
            cur = self.parents[cur]
            chain.append(cur)
        chain.reverse()
        self._lineage_cache[project_id] = chain
        return chain

    def child_toward(self, ancestor_id: str, project_id: str) -> str | None:
        """Direct child of *ancestor_id* on the path to *project_id*; None if they are equal."""
        chain = self.lineage(project_id)
        idx = chain.index(ancestor_id)
        return chain[idx + 1] if idx + 1 < len(chain) else None


def _catalog_key(project: Project) -> tuple[int, str, str]:
    return (project.sort_order, project.name, project.id)


def _make_context(
    projects: Sequence[Project] | Mapping[str, Project],
    *,
    period_policy: PeriodPolicy,
    now: datetime,
) -> _Context:
    catalog: dict[str, Project] = {}
    for project in (projects.values() if isinstance(projects, Mapping) else projects):
        catalog.setdefault(project.id, project)

    ordered = sorted(catalog.values(), key=_catalog_key)

    # Accept parent links in catalog order, dropping any link that would close a cycle.
    parents: dict[str, str] = {}
    for project in ordered:
        pid = project.parent_id
        if pid is None or pid not in catalog or pid == project.id:
            continue
        cur: str | None = pid
        while cur is not None and cur != project.id:
            cur = parents.get(cur)
        if cur == project.id:
            logger.debug("Ignoring parent link %s -> %s (cycle)", project.id, pid)
            continue
        parents[project.id] = pid

    children_of: dict[str | None, list[Project]] = {}
    for project in ordered:
        children_of.setdefault(parents.get(project.id), []).append(project)

    return _Context(
        catalog=catalog,
        parents=parents,
        children_of=children_of,
        period_policy=period_policy,
        now=now,
    )


def _join(parent_key: str, segment: str) -> str:
    return f"{parent_key}{KEY_SEPARATOR}{segment}" if parent_key else segment


def _make_node(
    cls: type[_GroupBase],
    ctx: _Context,
    *,
    children: Sequence[HierarchyGroup] = (),
    usage_records: Sequence[UsageRecord] = (),
    manual_records: Sequence[ManualRecord] = (),
    **fields: Any,
) -> HierarchyGroup:
    """Construct a node, eagerly computing its merged duration and leaf count."""
    intervals: list[UsageRecord | ManualRecord] = [*usage_records, *manual_records]
    for child in children:
        intervals.extend(child.iter_usage_records())
        intervals.extend(child.iter_manual_records())

    item_count = len(usage_records) + len(manual_records) + sum(c.item_count for c in children)
    return cls(
        children=tuple(children),
        usage_records=tuple(usage_records),
        manual_records=tuple(manual_records),
        total_seconds=merged_duration(intervals, now=ctx.now),
        item_count=item_count,
        **fields,
    )  # type: ignore[return-value]


def _by_duration(groups: list[HierarchyGroup]) -> list[HierarchyGroup]:
    return sorted(groups, key=lambda g: (-g.total_seconds, g.name.casefold(), g.name, g.key))


def _chronological(records: Sequence[UsageRecord]) -> list[UsageRecord]:
    return sorted(records, key=lambda r: (r.start, r.id))


def _build_level(
    level: Level,
    bucket: _Bucket,
    ctx: _Context,
    parent_key: str = "",
    project_id: str | None = None,
    manual: ManualRecord | None = None,
) -> list[HierarchyGroup]:
    """Partition *bucket* at *level* and recurse into the next level for each part.

    *manual* is the record owning the bucket when building its TimePeriods.
    """
    match level:
        case Level.PROJECT:
            by_root: dict[str | None, tuple[list[_Leaf], list[ManualRecord]]] = {}
            for leaf in bucket.leaves:
                root = ctx.lineage(leaf.project_id)[0] if leaf.project_id else None
                by_root.setdefault(root, ([], []))[0].append(leaf)
            for manual in bucket.manual_records:
                pid = manual.project_id if manual.project_id in ctx.catalog else None
                root = ctx.lineage(pid)[0] if pid else None
                by_root.setdefault(root, ([], []))[1].append(manual)

            groups: list[HierarchyGroup] = []
            for project in ctx.children_of.get(None, []):
                if project.id not in by_root:
                    continue
                leaves, manual_records = by_root[project.id]
                key = _join(parent_key, f"project:{project.id}")
                groups.append(_make_node(
                    ProjectGroup, ctx,
                    children=_build_level(
                        Level.SUBPROJECT, _Bucket(tuple(leaves), tuple(manual_records)), ctx, key, project.id,
                    ),
                    key=key,
                    name=project.name,
                    project_id=project.id,
                    color=project.color,
                ))

            leaves, manual_records = by_root.get(None, ([], []))
            key = _join(parent_key, f"project:{UNASSIGNED_PROJECT_KEY}")
            groups.append(_make_node(
                ProjectGroup, ctx,
                children=_build_level(
                    Level.MANUAL_RECORD, _Bucket(tuple(leaves), tuple(manual_records)), ctx, key,
                ),
                key=key,
                name=UNASSIGNED_PROJECT_NAME,
                is_unassigned=True,
            ))
            return groups

        case Level.SUBPROJECT:
            assert project_id is not None
            direct_leaves: list[_Leaf] = []
            direct_manual: list[ManualRecord] = []
            by_child: dict[str, tuple[list[_Leaf], list[ManualRecord]]] = {}
            for leaf in bucket.leaves:
                child = ctx.child_toward(project_id, leaf.project_id) if leaf.project_id else None
                if child is None:
                    direct_leaves.append(leaf)
                else:
                    by_child.setdefault(child, ([], []))[0].append(leaf)
            for manual in bucket.manual_records:
                child = ctx.child_toward(project_id, manual.project_id) if manual.project_id else None
                if child is None:
                    direct_manual.append(manual)
                else:
                    by_child.setdefault(child, ([], []))[1].append(manual)

            groups = []
            for sub in ctx.children_of.get(project_id, []):
                if sub.id not in by_child:
                    continue
                leaves, manual_records = by_child[sub.id]
                key = _join(parent_key, f"project:{sub.id}")
                groups.append(_make_node(
                    SubprojectGroup, ctx,
                    children=_build_level(
                        Level.SUBPROJECT, _Bucket(tuple(leaves), tuple(manual_records)), ctx, key, sub.id,
                    ),
                    key=key,
                    name=sub.name,
                    project_id=sub.id,
                    parent_id=project_id,
                    color=sub.color,
                ))
            groups.extend(_build_level(
                Level.MANUAL_RECORD, _Bucket(tuple(direct_leaves), tuple(direct_manual)), ctx, parent_key,
            ))
            return groups

        case Level.MANUAL_RECORD:
            # Keyed by object identity so records sharing an id keep separate groups.
            manual_by_ref: dict[int, ManualRecord] = {id(m): m for m in bucket.manual_records}
            usage_by_ref: dict[int, list[UsageRecord]] = {}
            unmatched: list[UsageRecord] = []
            for leaf in bucket.leaves:
                if leaf.manual is None:
                    unmatched.append(leaf.usage)
                    continue
                manual_by_ref.setdefault(id(leaf.manual), leaf.manual)
                usage_by_ref.setdefault(id(leaf.manual), []).append(leaf.usage)

            groups = []
            seen_ids: dict[str, int] = {}
            ordered = sorted(
                manual_by_ref.items(),
                key=lambda item: (item[1].start, item[1].id, item[1].end_or(ctx.now), item[1].title),
            )
            for ref, manual in ordered:
                n = seen_ids[manual.id] = seen_ids.get(manual.id, 0) + 1
                segment = f"manual:{manual.id}" if n == 1 else f"manual:{manual.id}#{n}"
                key = _join(parent_key, segment)
                groups.append(_make_node(
                    ManualRecordGroup, ctx,
                    children=_build_level(
                        Level.TIME_PERIOD, _usage_bucket(usage_by_ref.get(ref, [])), ctx, key, manual=manual,
                    ),
                    manual_records=(manual,),
                    key=key,
                    name=manual.title,
                    manual_record_id=manual.id,
                ))

            if unmatched:
                key = _join(parent_key, f"manual:{NO_MANUAL_RECORD_KEY}")
                groups.append(_make_node(
                    ManualRecordGroup, ctx,
                    children=_build_level(Level.TIME_PERIOD, _usage_bucket(unmatched), ctx, key),
                    key=key,
                    name=NO_MANUAL_RECORD_NAME,
                ))
            return groups

        case Level.TIME_PERIOD:
            policy = ctx.period_policy
            spans: list[tuple[list[UsageRecord], datetime, datetime | None]] = []
            for period in policy.segment(_chronological([leaf.usage for leaf in bucket.leaves]), now=ctx.now):
                if not period:
                    continue
                start = min(r.start for r in period)
                end = None if any(r.is_open for r in period) else max(r.end for r in period)  # type: ignore[type-var]
                spans.append((period, start, end))

            if manual is not None and policy.spans_manual_record:
                if not spans:
                    spans.append(([], manual.start, manual.end))
                else:
                    records, start, end = spans[0]
                    spans[0] = (records, min(start, manual.start), end)
                    records, start, end = spans[-1]
                    if end is not None and manual.end is not None:
                        end = max(end, manual.end)
                    else:
                        end = None
                    spans[-1] = (records, start, end)

            groups = []
            for records, start, end in spans:
                key = _join(parent_key, f"period:{start.isoformat()}")
                groups.append(_make_node(
                    TimePeriodGroup, ctx,
                    children=_build_level(Level.APP_NAME, _usage_bucket(records), ctx, key),
                    key=key,
                    name=policy.label(start, end),
                    start=start,
                    end=end,
                ))
            return groups

        case Level.APP_NAME:
            by_app: dict[str, list[UsageRecord]] = {}
            for record in _chronological([leaf.usage for leaf in bucket.leaves]):
                by_app.setdefault(record.app_id, []).append(record)

            groups = []
            for app_id, records in by_app.items():
                key = _join(parent_key, f"app:{app_id}")
                groups.append(_make_node(
                    AppNameGroup, ctx,
                    children=_build_level(Level.APP_TITLE, _usage_bucket(records), ctx, key),
                    key=key,
                    name=records[0].app_name,
                    app_id=app_id,
                ))
            return _by_duration(groups)

        case Level.APP_TITLE:
            by_title: dict[str, list[UsageRecord]] = {}
            for record in _chronological([leaf.usage for leaf in bucket.leaves]):
                by_title.setdefault(record.resolved_title, []).append(record)

            groups = [
                _make_node(
                    AppTitleGroup, ctx,
                    usage_records=records,
                    key=_join(parent_key, f"title:{title}"),
                    name=title,
                    title=title,
                )
                for title, records in by_title.items()
            ]
            return _by_duration(groups)

    raise AssertionError(f"unhandled level {level!r}")


def _usage_bucket(records: Sequence[UsageRecord]) -> _Bucket:
    return _Bucket(leaves=tuple(_Leaf(usage=r, manual=None, project_id=None) for r in records))


def _leaves_from_matches(result: MatchResult) -> tuple[_Leaf, ...]:
    leaves: list[_Leaf] = []
    for project_id, assignments in result.assigned.items():
        for a in assignments:
            leaves.append(_Leaf(usage=a.usage_record, manual=a.manual_record, project_id=project_id))
    for usage in result.unassigned:
        best = result.best_match(usage.id)
        leaves.append(_Leaf(
            usage=usage,
            manual=best.manual_record if best is not None else None,
            project_id=None,
        ))
    return tuple(leaves)


def apply_inclusion_filters(
    usage_records: Sequence[UsageRecord],
    manual_records: Sequence[ManualRecord],
    *,
    include_manual_records: bool = True,
    include_usage_records: bool = True,
    include_titles: bool = True,
) -> tuple[list[UsageRecord], list[ManualRecord]]:
    """Apply the three inclusion flags to the raw inputs.

    Filtering happens *before* matching, so dropping manual records also
    drops the project assignments they would have produced.  Disabling
    titles strips ``window_title`` and ``app_title`` so every usage
    record resolves to its application name.
    """
    usage = list(usage_records) if include_usage_records else []
    manual = list(manual_records) if include_manual_records else []
    if not include_titles:
        usage = [r.model_copy(update={"window_title": None, "app_title": None}) for r in usage]
    return usage, manual


def build_hierarchy(
    usage_records: Sequence[UsageRecord],
    manual_records: Sequence[ManualRecord],
    projects: Sequence[Project] | Mapping[str, Project],
    include_manual_records: bool = True,
    include_usage_records: bool = True,
    include_titles: bool = True,
    *,
    now: datetime | None = None,
    period_policy: PeriodPolicy | None = None,
) -> list[HierarchyGroup]:
    """Build the project summary tree for one snapshot of inputs.

    Pure and deterministic: identical inputs (including *now*) produce
    structurally identical trees.  Input anomalies never raise; inverted
    intervals count as zero, dangling project references fall into
    ``Unassigned``, and parent cycles are broken.

    Args:
        usage_records: Automatically captured usage records.
        manual_records: User-authored or timer-derived records.
        projects: Project catalog (sequence or id-keyed mapping).
        include_manual_records: When ``False``, manual records are
            dropped before matching.
        include_usage_records: When ``False``, usage records are dropped.
        include_titles: When ``False``, window/app titles are ignored so
            AppTitle groups collapse to the application name.
        now: Reference time for open intervals, captured once for the
            whole tree.  Defaults to the current UTC time.
        period_policy: TimePeriod segmentation strategy.  Defaults to
            :class:`~timetree.hierarchy.periods.SinglePeriod`.

    Returns:
        Top-level project groups followed by the ``Unassigned`` group, or
        an empty list when there is nothing to show.

    Raises:
        ContractViolationError: If any input collection is ``None``.
    """
    require_collection("usage_records", usage_records)
    require_collection("manual_records", manual_records)
    if projects is None:
        raise ContractViolationError("projects must not be None; pass an empty catalog instead")

    ref = resolve_now(now)
    usage, manual = apply_inclusion_filters(
        usage_records,
        manual_records,
        include_manual_records=include_manual_records,
        include_usage_records=include_usage_records,
        include_titles=include_titles,
    )
    if not usage and not manual:
        return []

    ctx = _make_context(projects, period_policy=period_policy or SinglePeriod(), now=ref)
    result = match_usage_records(usage, manual, ctx.catalog, now=ref)
    bucket = _Bucket(leaves=_leaves_from_matches(result), manual_records=tuple(manual))

    groups = _build_level(Level.PROJECT, bucket, ctx)
    logger.debug(
        "Built hierarchy: %d top-level groups from %d usage / %d manual records",
        len(groups), len(usage), len(manual),
    )
    return groups


def build_from_source(
    source: RecordSource,
    date_range: DateRange | None = None,
    *,
    include_manual_records: bool = True,
    include_usage_records: bool = True,
    include_titles: bool = True,
    now: datetime | None = None,
    period_policy: PeriodPolicy | None = None,
) -> list[HierarchyGroup]:
    """Fetch a snapshot from *source* and build its hierarchy."""
    return build_hierarchy(
        list(source.fetch_usage_records(date_range)),
        list(source.fetch_manual_records(date_range)),
        list(source.fetch_projects()),
        include_manual_records,
        include_usage_records,
        include_titles,
        now=now,
        period_policy=period_policy,
    )
