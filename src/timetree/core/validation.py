"""Input checks: caller-contract guards and a non-raising anomaly report.

Two classes of problems are distinguished:

* **Caller-contract violations** (e.g. passing ``None`` instead of a
  project catalog) signal a programming bug and raise
  :class:`ContractViolationError`.
* **Input anomalies** (inverted intervals, dangling project references,
  parent cycles, several open usage records) are bad *data*.  The engine
  degrades gracefully on them; :func:`validate_inputs` only reports them
  so callers can surface diagnostics.
"""

from __future__ import annotations

from collections import Counter
from enum import StrEnum
from typing import Any, Sequence

from pydantic import BaseModel

from timetree.core.types import ManualRecord, Project, UsageRecord


class ContractViolationError(TypeError):
    """Raised when the engine is called with arguments that break its contract."""


def require_collection(name: str, value: Any) -> None:
    """Raise :class:`ContractViolationError` if *value* is ``None``."""
    if value is None:
        raise ContractViolationError(f"{name} must not be None; pass an empty collection instead")


class Severity(StrEnum):
    ERROR = "error"
    WARNING = "warning"


class Finding(BaseModel, frozen=True):
    severity: Severity
    check: str
    record_id: str | None = None
    message: str
    detail: Any = None


class ValidationReport(BaseModel):
    """Collects all findings from :func:`validate_inputs`."""

    findings: list[Finding] = []

    @property
    def errors(self) -> list[Finding]:
        return [f for f in self.findings if f.severity == Severity.ERROR]

    @property
    def warnings(self) -> list[Finding]:
        return [f for f in self.findings if f.severity == Severity.WARNING]

    @property
    def ok(self) -> bool:
        return len(self.errors) == 0


def _check_inverted(records: Sequence[UsageRecord | ManualRecord], kind: str) -> list[Finding]:
    return [
        Finding(
            severity=Severity.WARNING,
            check="inverted_interval",
            record_id=r.id,
            message=f"{kind} {r.id!r} ends before it starts; counted as zero duration",
            detail={"start": r.start.isoformat(), "end": r.end.isoformat()},
        )
        for r in records
        if r.end is not None and r.end < r.start
    ]


def _check_duplicate_ids(records: Sequence[UsageRecord | ManualRecord | Project], kind: str) -> list[Finding]:
    counts = Counter(r.id for r in records)
    return [
        Finding(
            severity=Severity.ERROR,
            check="duplicate_id",
            record_id=rid,
            message=f"{kind} id {rid!r} appears {n} times",
            detail=n,
        )
        for rid, n in sorted(counts.items())
        if n > 1
    ]


def _check_open_usage(usage_records: Sequence[UsageRecord]) -> list[Finding]:
    open_ids = [r.id for r in usage_records if r.is_open]
    if len(open_ids) <= 1:
        return []
    return [Finding(
        severity=Severity.WARNING,
        check="multiple_open_usage_records",
        message=f"{len(open_ids)} usage records are open; at most one is expected",
        detail=open_ids,
    )]


def _check_dangling_projects(
    manual_records: Sequence[ManualRecord],
    catalog: dict[str, Project],
) -> list[Finding]:
    return [
        Finding(
            severity=Severity.WARNING,
            check="dangling_project",
            record_id=m.id,
            message=f"Manual record {m.id!r} references unknown project {m.project_id!r}; treated as unassigned",
            detail=m.project_id,
        )
        for m in manual_records
        if m.project_id is not None and m.project_id not in catalog
    ]


def _check_project_parents(catalog: dict[str, Project]) -> list[Finding]:
    findings: list[Finding] = []
    for project in catalog.values():
        if project.parent_id is None:
            continue
        if project.parent_id not in catalog:
            findings.append(Finding(
                severity=Severity.WARNING,
                check="dangling_parent",
                record_id=project.id,
                message=f"Project {project.id!r} has unknown parent {project.parent_id!r}; treated as a root",
                detail=project.parent_id,
            ))
            continue
        seen: set[str] = set()
        cur: Project | None = project
        cyclic = False
        while cur is not None and cur.parent_id is not None:
            if cur.id in seen:
                cyclic = True
                break
            seen.add(cur.id)
            cur = catalog.get(cur.parent_id)
        if cyclic:
            findings.append(Finding(
                severity=Severity.WARNING,
                check="parent_cycle",
                record_id=project.id,
                message=f"Project {project.id!r} is part of or leads into a parent cycle",
            ))
    return findings


def validate_inputs(
    usage_records: Sequence[UsageRecord],
    manual_records: Sequence[ManualRecord],
    projects: Sequence[Project],
) -> ValidationReport:
    """Report anomalies in a snapshot of engine inputs without raising.

    Checks:

    1. Inverted intervals in usage and manual records.
    2. Duplicate ids per record kind.
    3. More than one open usage record.
    4. Manual records referencing projects missing from the catalog.
    5. Projects with unknown parents or parent cycles.

    Raises:
        ContractViolationError: If any argument is ``None``.
    """
    require_collection("usage_records", usage_records)
    require_collection("manual_records", manual_records)
    require_collection("projects", projects)

    catalog = {p.id: p for p in projects}
    report = ValidationReport()
    report.findings.extend(_check_inverted(usage_records, "Usage record"))
    report.findings.extend(_check_inverted(manual_records, "Manual record"))
    report.findings.extend(_check_duplicate_ids(usage_records, "Usage record"))
    report.findings.extend(_check_duplicate_ids(manual_records, "Manual record"))
    report.findings.extend(_check_duplicate_ids(projects, "Project"))
    report.findings.extend(_check_open_usage(usage_records))
    report.findings.extend(_check_dangling_projects(manual_records, catalog))
    report.findings.extend(_check_project_parents(catalog))
    return report
