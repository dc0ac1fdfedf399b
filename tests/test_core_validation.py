from __future__ import annotations

import pytest

from timetree.core.types import Project
from timetree.core.validation import ContractViolationError, Severity, validate_inputs


def _checks(report) -> list[str]:
    return [f.check for f in report.findings]


class TestValidateInputs:
    def test_clean_scenario(self, scenario) -> None:
        report = validate_inputs(*scenario)
        assert report.ok is True
        assert report.findings == []

    def test_inverted_interval_is_warning(self, make_usage, make_manual) -> None:
        report = validate_inputs(
            [make_usage("u", "10:00", "09:00")],
            [make_manual("m", "11:00", "10:30")],
            [],
        )
        assert _checks(report) == ["inverted_interval", "inverted_interval"]
        assert report.ok is True
        assert all(f.severity == Severity.WARNING for f in report.findings)

    def test_duplicate_ids_are_errors(self, make_usage) -> None:
        report = validate_inputs(
            [make_usage("u", "09:00", "09:10"), make_usage("u", "09:10", "09:20")],
            [],
            [],
        )
        assert report.ok is False
        assert report.errors[0].check == "duplicate_id"
        assert report.errors[0].detail == 2

    def test_multiple_open_usage_records(self, make_usage) -> None:
        report = validate_inputs(
            [make_usage("a", "09:00", None), make_usage("b", "10:00", None)],
            [],
            [],
        )
        assert _checks(report) == ["multiple_open_usage_records"]
        assert report.findings[0].detail == ["a", "b"]

    def test_single_open_usage_record_is_fine(self, make_usage) -> None:
        assert validate_inputs([make_usage("a", "09:00", None)], [], []).findings == []

    def test_dangling_project(self, make_manual) -> None:
        report = validate_inputs([], [make_manual("m", "09:00", "10:00", project_id="ghost")], [])
        assert _checks(report) == ["dangling_project"]
        assert report.findings[0].record_id == "m"

    def test_dangling_parent(self) -> None:
        report = validate_inputs([], [], [Project(id="p", name="P", parent_id="missing")])
        assert _checks(report) == ["dangling_parent"]

    def test_parent_cycle(self) -> None:
        projects = [
            Project(id="a", name="A", parent_id="b"),
            Project(id="b", name="B", parent_id="a"),
            Project(id="c", name="C", parent_id="a"),
        ]
        report = validate_inputs([], [], projects)
        assert _checks(report) == ["parent_cycle"] * 3
        assert {f.record_id for f in report.findings} == {"a", "b", "c"}

    def test_valid_hierarchy_has_no_cycle(self, projects) -> None:
        assert validate_inputs([], [], projects).findings == []

    @pytest.mark.parametrize("position", [0, 1, 2])
    def test_none_is_contract_violation(self, position: int) -> None:
        args: list = [[], [], []]
        args[position] = None
        with pytest.raises(ContractViolationError):
            validate_inputs(*args)
