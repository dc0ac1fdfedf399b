"""Detection of manual records that overlap each other.

Overlapping manual records make usage-record assignment ambiguous (the
matcher still picks a deterministic winner, but the user probably
double-booked time).  This module only reports such pairs; resolving
them is left to the record owner.
"""

from __future__ import annotations

from datetime import datetime
from typing import Sequence

from pydantic import BaseModel, Field

from timetree.core.time import resolve_now
from timetree.core.types import ManualRecord
from timetree.match.overlap import overlap_seconds


class ManualOverlap(BaseModel, frozen=True):
    """Two manual records whose intervals overlap."""

    first_id: str = Field(description="Id of the earlier-starting record.")
    second_id: str = Field(description="Id of the later-starting record.")
    overlap_seconds: float = Field(gt=0)
    same_project: bool = Field(description="True when both records reference the same project.")


def find_manual_overlaps(
    manual_records: Sequence[ManualRecord],
    *,
    now: datetime | None = None,
) -> list[ManualOverlap]:
    """Return every pair of manual records with strictly positive overlap.

    Records are swept in start order so only records whose start precedes
    the running maximum end are compared.

    Args:
        manual_records: Manual records to inspect.
        now: Reference time for running timers.

    Returns:
        Overlapping pairs ordered by the later record's start, then the
        earlier record's start.
    """
    ref = resolve_now(now)
    ordered = sorted(
        (m for m in manual_records if m.end_or(ref) > m.start),
        key=lambda m: (m.start, m.id),
    )

    pairs: list[ManualOverlap] = []
    active: list[ManualRecord] = []
    for record in ordered:
        active = [a for a in active if a.end_or(ref) > record.start]
        for earlier in active:
            seconds = overlap_seconds(
                earlier.start, earlier.end, record.start, record.end, now=ref,
            )
            if seconds > 0:
                pairs.append(ManualOverlap(
                    first_id=earlier.id,
                    second_id=record.id,
                    overlap_seconds=seconds,
                    same_project=earlier.project_id == record.project_id,
                ))
        active.append(record)

    return pairs
