"""Grand-total summary and plain-text rendering of a hierarchy.

The grand total is the merged duration over *every* leaf in the tree, so
time covered by both a manual record and the usage records beneath it is
counted once.  An empty tree is an expected state: it renders the literal
``"0m 0s"`` together with an explanatory message, never an error.
"""

from __future__ import annotations

from datetime import datetime
from typing import Sequence

from pydantic import BaseModel, Field

from timetree.aggregate.duration import merged_duration
from timetree.core.defaults import EMPTY_STATE_MESSAGE, EMPTY_TOTAL_DISPLAY
from timetree.core.time import resolve_now
from timetree.core.types import ManualRecord, UsageRecord
from timetree.hierarchy.nodes import HierarchyGroup
from timetree.report.format import format_duration


class TreeSummary(BaseModel, frozen=True):
    """Header data for a rendered hierarchy."""

    total_seconds: float = Field(ge=0, description="Merged duration across all leaves.")
    display: str = Field(description="format_duration(total_seconds), or '0m 0s' when empty.")
    item_count: int = Field(ge=0, description="Total leaf count.")
    group_count: int = Field(ge=0, description="Number of top-level groups.")
    is_empty: bool
    message: str | None = Field(default=None, description="Empty-state explanation, if any.")


def summarize_tree(groups: Sequence[HierarchyGroup], *, now: datetime | None = None) -> TreeSummary:
    """Compute the header total for *groups*.

    Args:
        groups: Top-level groups returned by
            :func:`~timetree.hierarchy.builder.build_hierarchy`.
        now: Reference time for open intervals; pass the same value used
            to build the tree so header and nodes agree.

    Returns:
        A :class:`TreeSummary`.
    """
    if not groups:
        return TreeSummary(
            total_seconds=0.0,
            display=EMPTY_TOTAL_DISPLAY,
            item_count=0,
            group_count=0,
            is_empty=True,
            message=EMPTY_STATE_MESSAGE,
        )

    leaves: list[UsageRecord | ManualRecord] = []
    for group in groups:
        leaves.extend(group.iter_usage_records())
        leaves.extend(group.iter_manual_records())

    total = merged_duration(leaves, now=resolve_now(now))
    return TreeSummary(
        total_seconds=total,
        display=format_duration(total),
        item_count=sum(g.item_count for g in groups),
        group_count=len(groups),
        is_empty=False,
    )


def render_tree(
    groups: Sequence[HierarchyGroup],
    *,
    max_depth: int | None = None,
    indent: str = "  ",
) -> str:
    """Render *groups* as an indented text outline.

    Each line reads ``<name>  <duration>  (<items>)``.  An empty tree
    renders the empty-state message with ``"0m 0s"``.

    Args:
        groups: Top-level groups.
        max_depth: Deepest level to print (0 = top level only).
        indent: Per-level indentation.
    """
    if not groups:
        return f"{EMPTY_STATE_MESSAGE}  {EMPTY_TOTAL_DISPLAY}"

    lines: list[str] = []
    for group in groups:
        for depth, node in group.walk():
            if max_depth is not None and depth > max_depth:
                continue
            lines.append(
                f"{indent * depth}{node.name}  {format_duration(node.total_seconds)}  ({node.item_count})"
            )
    return "\n".join(lines)
