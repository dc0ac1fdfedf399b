"""Tree export utilities: JSON, CSV, and Parquet output.

JSON keeps the nested structure (via the pydantic models); CSV and
Parquet flatten the tree into one row per node in depth-first order.
"""

from __future__ import annotations

import contextlib
import csv
import hashlib
import json
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any, Final, Sequence

import pandas as pd
from pydantic import TypeAdapter

from timetree.core.defaults import KEY_SEPARATOR
from timetree.hierarchy.nodes import HierarchyGroup, Level
from timetree.report.format import format_duration
from timetree.report.summary import summarize_tree

_REDACTED: Final[str] = "[REDACTED]"

ROW_COLUMNS: Final[list[str]] = [
    "depth",
    "level",
    "key",
    "parent_key",
    "name",
    "total_seconds",
    "duration",
    "item_count",
]

_GROUPS_ADAPTER: Final[TypeAdapter[list[HierarchyGroup]]] = TypeAdapter(list[HierarchyGroup])


def title_hash(title: str, length: int = 12) -> str:
    """Deterministic truncated SHA-256 hex digest of a title."""
    return hashlib.sha256(title.encode("utf-8")).hexdigest()[:length]


def tree_to_rows(groups: Sequence[HierarchyGroup], *, redact_titles: bool = False) -> list[dict[str, Any]]:
    """Flatten *groups* into one dict per node, depth-first.

    Args:
        groups: Top-level groups.
        redact_titles: Replace AppTitle names (window/document titles)
            with ``[REDACTED]`` and the title segment of their keys with
            :func:`title_hash`, so rows stay distinguishable.

    Returns:
        Rows with the keys listed in :data:`ROW_COLUMNS`.
    """
    rows: list[dict[str, Any]] = []
    stack: list[tuple[int, str | None, HierarchyGroup]] = [(0, None, g) for g in reversed(groups)]
    while stack:
        depth, parent_key, node = stack.pop()
        name, key = node.name, node.key
        if redact_titles and node.level == Level.APP_TITLE:
            # AppTitle is the leaf level, so only its own key embeds the title.
            name = _REDACTED
            key = f"{parent_key}{KEY_SEPARATOR}title:{title_hash(node.name)}"
        rows.append({
            "depth": depth,
            "level": str(node.level),
            "key": key,
            "parent_key": parent_key,
            "name": name,
            "total_seconds": round(node.total_seconds, 3),
            "duration": format_duration(node.total_seconds),
            "item_count": node.item_count,
        })
        stack.extend((depth + 1, node.key, child) for child in reversed(node.children))
    return rows


def _redact_node_dict(node: dict[str, Any], parent_key: str | None) -> None:
    """Scrub titles and notes in place from one dumped node and its subtree."""
    for usage in node["usage_records"]:
        for field in ("window_title", "app_title"):
            if usage.get(field) is not None:
                usage[field] = _REDACTED
    for manual in node["manual_records"]:
        if manual.get("notes") is not None:
            manual["notes"] = _REDACTED
    if node["level"] == Level.APP_TITLE:
        node["key"] = f"{parent_key}{KEY_SEPARATOR}title:{title_hash(node['title'])}"
        node["name"] = node["title"] = _REDACTED
    for child in node["children"]:
        _redact_node_dict(child, node["key"])


def export_tree_json(
    groups: Sequence[HierarchyGroup],
    path: Path,
    *,
    now: datetime | None = None,
    redact_titles: bool = False,
) -> Path:
    """Write the nested tree plus its summary header to a JSON file.

    Args:
        groups: Top-level groups.
        path: Destination JSON file path.
        now: Reference time for the summary total; pass the value the
            tree was built with.
        redact_titles: Replace window/app titles and manual-record notes
            with ``[REDACTED]``, and hash AppTitle keys as
            :func:`tree_to_rows` does.

    Returns:
        The *path* that was written.
    """
    dumped = _GROUPS_ADAPTER.dump_python(list(groups), mode="json")
    if redact_titles:
        for node in dumped:
            _redact_node_dict(node, None)
    data = {
        "summary": summarize_tree(groups, now=now).model_dump(),
        "groups": dumped,
    }
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2))
    return path


def read_tree_json(path: Path) -> list[HierarchyGroup]:
    """Load groups previously written by :func:`export_tree_json`."""
    data = json.loads(path.read_text(encoding="utf-8"))
    return _GROUPS_ADAPTER.validate_python(data["groups"])


def export_tree_csv(groups: Sequence[HierarchyGroup], path: Path, *, redact_titles: bool = False) -> Path:
    """Write the flattened tree as CSV with one row per node.

    Returns:
        The *path* that was written.
    """
    rows = tree_to_rows(groups, redact_titles=redact_titles)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=ROW_COLUMNS)
        writer.writeheader()
        writer.writerows(rows)
    return path


def export_tree_parquet(groups: Sequence[HierarchyGroup], path: Path, *, redact_titles: bool = False) -> Path:
    """Write the flattened tree as Parquet, atomically.

    Writes to a temporary file in the same directory first, then replaces
    the target via :func:`os.replace` so readers never see a partial file.
    Schema matches :func:`export_tree_csv`.

    Returns:
        The *path* that was written.
    """
    df = pd.DataFrame(tree_to_rows(groups, redact_titles=redact_titles), columns=ROW_COLUMNS)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=path.parent, suffix=".parquet.tmp")
    try:
        os.close(fd)
        df.to_parquet(tmp, engine="pyarrow", index=False)
        os.replace(tmp, path)
    except BaseException:
        with contextlib.suppress(OSError):
            os.unlink(tmp)
        raise
    return path
