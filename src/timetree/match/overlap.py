"""Temporal-overlap matching of usage records against manual records.

For each *closed* :class:`~timetree.core.types.UsageRecord`, every
:class:`~timetree.core.types.ManualRecord` overlapping it by a strictly
positive amount is a candidate.  Candidates are ranked by overlap
(descending), then manual-record start (ascending), then manual-record id,
so the ranking is a total order and identical inputs always yield the
same winner.  The winner's ``project_id`` decides the project
assignment; references that do not resolve in the catalog leave the
usage record unassigned.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime
from typing import Sequence

from pydantic import BaseModel, Field

from timetree.core.time import resolve_now
from timetree.core.types import ManualRecord, Project, UsageRecord
from timetree.core.validation import ContractViolationError, require_collection

logger = logging.getLogger(__name__)


class MatchCandidate(BaseModel, frozen=True):
    """A manual record overlapping a usage record, with the overlap amount."""

    manual_record: ManualRecord
    overlap_seconds: float = Field(gt=0, description="Strictly positive overlap in seconds.")


class Assignment(BaseModel, frozen=True):
    """A usage record paired with the manual record that won it."""

    usage_record: UsageRecord
    manual_record: ManualRecord


class MatchResult(BaseModel, frozen=True):
    """Ranked matches per usage record plus the derived project partition.

    ``matches`` has an entry for every input usage record (empty list for
    open records and records without overlap).  Each usage record is in
    exactly one of ``assigned`` (keyed by project id) or ``unassigned``.
    """

    matches: dict[str, list[MatchCandidate]]
    assigned: dict[str, list[Assignment]]
    unassigned: list[UsageRecord]

    def best_match(self, usage_id: str) -> MatchCandidate | None:
        ranked = self.matches.get(usage_id) or []
        return ranked[0] if ranked else None

    @property
    def assigned_count(self) -> int:
        return sum(len(items) for items in self.assigned.values())


def overlap_seconds(
    a_start: datetime,
    a_end: datetime | None,
    b_start: datetime,
    b_end: datetime | None,
    *,
    now: datetime,
) -> float:
    """Seconds during which ``[a_start, a_end)`` and ``[b_start, b_end)`` coincide.

    Open ends are evaluated at *now*.  Touching intervals and inverted
    intervals yield ``0.0``.
    """
    a_end = a_end if a_end is not None else now
    b_end = b_end if b_end is not None else now
    if a_end <= a_start or b_end <= b_start:
        return 0.0
    lo = max(a_start, b_start)
    hi = min(a_end, b_end)
    return max(0.0, (hi - lo).total_seconds())


def _candidate_sort_key(candidate: MatchCandidate) -> tuple[float, datetime, str]:
    return (-candidate.overlap_seconds, candidate.manual_record.start, candidate.manual_record.id)


def rank_matches(
    usage_record: UsageRecord,
    manual_records: Sequence[ManualRecord],
    *,
    now: datetime | None = None,
) -> list[MatchCandidate]:
    """Rank the manual records overlapping *usage_record*.

    Open usage records are excluded from matching and always return an
    empty list.

    Args:
        usage_record: The usage record to match.
        manual_records: Candidate manual records.
        now: Reference time for running manual records.

    Returns:
        Candidates with positive overlap, best first.
    """
    if usage_record.is_open:
        return []

    ref = resolve_now(now)
    candidates: list[MatchCandidate] = []
    for manual in manual_records:
        seconds = overlap_seconds(
            usage_record.start, usage_record.end,
            manual.start, manual.end,
            now=ref,
        )
        if seconds > 0:
            candidates.append(MatchCandidate(manual_record=manual, overlap_seconds=seconds))

    candidates.sort(key=_candidate_sort_key)
    return candidates


def _as_catalog(projects: Mapping[str, Project] | Sequence[Project]) -> Mapping[str, Project]:
    if isinstance(projects, Mapping):
        return projects
    return {p.id: p for p in projects}


def match_usage_records(
    usage_records: Sequence[UsageRecord],
    manual_records: Sequence[ManualRecord],
    projects: Mapping[str, Project] | Sequence[Project],
    *,
    now: datetime | None = None,
) -> MatchResult:
    """Match every usage record to its overlapping manual records and partition by project.

    Args:
        usage_records: Usage records in caller order.  Open records are
            never matched and always land in ``unassigned``.
        manual_records: Manual records eligible for matching.
        projects: Project catalog, either keyed by id or as a sequence.
        now: Reference time for running manual records.  Defaults to the
            current UTC time.

    Returns:
        A :class:`MatchResult` with ranked matches and the partition.

    Raises:
        ContractViolationError: If any of the collections is ``None``.
    """
    require_collection("usage_records", usage_records)
    require_collection("manual_records", manual_records)
    if projects is None:
        raise ContractViolationError("projects must not be None; pass an empty catalog instead")

    ref = resolve_now(now)
    catalog = _as_catalog(projects)

    matches: dict[str, list[MatchCandidate]] = {}
    assigned: dict[str, list[Assignment]] = {}
    unassigned: list[UsageRecord] = []
    dangling = 0

    for usage in usage_records:
        ranked = rank_matches(usage, manual_records, now=ref)
        matches[usage.id] = ranked

        if not ranked:
            unassigned.append(usage)
            continue

        winner = ranked[0].manual_record
        project_id = winner.project_id
        if project_id is None or project_id not in catalog:
            if project_id is not None:
                dangling += 1
            unassigned.append(usage)
            continue

        assigned.setdefault(project_id, []).append(
            Assignment(usage_record=usage, manual_record=winner)
        )

    if dangling:
        logger.debug("%d usage records matched manual records with unknown projects", dangling)
    logger.debug(
        "Matched %d usage records: %d assigned, %d unassigned",
        len(usage_records),
        len(usage_records) - len(unassigned),
        len(unassigned),
    )

    return MatchResult(matches=matches, assigned=assigned, unassigned=unassigned)
