"""Typer CLI entrypoint and command definitions for timetree."""

import datetime as dt
import json
from pathlib import Path
from typing import Optional

import typer

from timetree.core.defaults import DEFAULT_DATA_DIR, DEFAULT_OUT_DIR

app = typer.Typer()


def _parse_now(now: Optional[str]) -> dt.datetime:
    """Reference time for the command: *--now* as naive UTC, or the current time."""
    from timetree.core.time import resolve_now

    if now is None:
        return resolve_now(None)
    try:
        return resolve_now(dt.datetime.fromisoformat(now))
    except ValueError:
        typer.echo(f"Invalid --now timestamp: {now}", err=True)
        raise typer.Exit(code=1)


def _load_source(snapshot: str, now: Optional[dt.datetime]):
    """Load a snapshot file, exiting with code 1 on missing or malformed input."""
    from pydantic import ValidationError

    from timetree.adapters.snapshot import SnapshotSource

    path = Path(snapshot)
    if not path.exists():
        typer.echo(f"Snapshot not found: {path}", err=True)
        raise typer.Exit(code=1)
    try:
        return SnapshotSource.from_path(path, now=now)
    except (ValidationError, json.JSONDecodeError) as exc:
        typer.echo(f"Invalid snapshot {path}: {exc}", err=True)
        raise typer.Exit(code=1)


def _build(
    snapshot: str,
    data_dir: str,
    now: Optional[str],
    date: Optional[str],
    no_manual: bool,
    no_usage: bool,
    no_titles: bool,
    period: Optional[str],
):
    """Resolve view settings, load the snapshot, and build the tree.

    Command-line flags override the persisted view config.  Returns
    ``(groups, now)`` with *now* captured once for the whole command.
    """
    from timetree.core.config import ViewConfig
    from timetree.core.time import day_start, next_day_start
    from timetree.core.types import DateRange
    from timetree.hierarchy.builder import build_from_source
    from timetree.hierarchy.periods import policy_from_name

    cfg = ViewConfig(data_dir)
    ref = _parse_now(now)

    if period is None:
        policy = cfg.build_period_policy()
    else:
        try:
            policy = policy_from_name(period, idle_gap_seconds=cfg.idle_gap_seconds)
        except ValueError as exc:
            typer.echo(str(exc), err=True)
            raise typer.Exit(code=1)

    date_range = None
    if date is not None:
        try:
            day = dt.datetime.fromisoformat(date)
        except ValueError:
            typer.echo(f"Invalid --date: {date}", err=True)
            raise typer.Exit(code=1)
        date_range = DateRange(start=day_start(day), end=next_day_start(day))

    source = _load_source(snapshot, ref)
    groups = build_from_source(
        source,
        date_range,
        include_manual_records=cfg.include_manual_records and not no_manual,
        include_usage_records=cfg.include_usage_records and not no_usage,
        include_titles=cfg.include_titles and not no_titles,
        now=ref,
        period_policy=policy,
    )
    return groups, ref


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging (titles redacted)"),
) -> None:
    """Reconcile usage records with manual records into a project tree."""
    from timetree.core.logging import configure_cli_logging

    configure_cli_logging(verbose)


# -- tree ---------------------------------------------------------------------


@app.command("tree")
def tree_cmd(
    snapshot: str = typer.Option(..., "--snapshot", help="Path to a snapshot JSON file"),
    no_manual: bool = typer.Option(False, "--no-manual", help="Exclude manual records"),
    no_usage: bool = typer.Option(False, "--no-usage", help="Exclude usage records"),
    no_titles: bool = typer.Option(False, "--no-titles", help="Group usage by application name only"),
    period: Optional[str] = typer.Option(None, "--period", help="TimePeriod policy: single, idle-gap, day, daypart"),
    depth: Optional[int] = typer.Option(None, "--depth", help="Deepest level to print (0 = projects only)"),
    date: Optional[str] = typer.Option(None, "--date", help="Only records overlapping this day (YYYY-MM-DD)"),
    now: Optional[str] = typer.Option(None, "--now", help="Reference time for open records (ISO-8601)"),
    data_dir: str = typer.Option(DEFAULT_DATA_DIR, help="Directory holding view.json"),
) -> None:
    """Print the project summary tree with its grand total."""
    from timetree.report.summary import render_tree, summarize_tree

    groups, ref = _build(snapshot, data_dir, now, date, no_manual, no_usage, no_titles, period)
    summary = summarize_tree(groups, now=ref)

    if summary.is_empty:
        typer.echo(f"Total: {summary.display}")
        typer.echo(summary.message)
        return

    typer.echo(f"Total: {summary.display} ({summary.item_count} items)")
    typer.echo(render_tree(groups, max_depth=depth))


# -- matches ------------------------------------------------------------------


@app.command("matches")
def matches_cmd(
    snapshot: str = typer.Option(..., "--snapshot", help="Path to a snapshot JSON file"),
    now: Optional[str] = typer.Option(None, "--now", help="Reference time for open records (ISO-8601)"),
) -> None:
    """List each usage record with its winning manual record and project."""
    from timetree.match.overlap import match_usage_records
    from timetree.report.format import format_duration

    ref = _parse_now(now)
    source = _load_source(snapshot, ref)

    usage = source.fetch_usage_records()
    catalog = {p.id: p for p in source.fetch_projects()}
    result = match_usage_records(usage, source.fetch_manual_records(), catalog, now=ref)

    for record in usage:
        best = result.best_match(record.id)
        if best is None:
            typer.echo(f"{record.id}  -> (no match)")
            continue
        project_id = best.manual_record.project_id
        project = catalog[project_id].name if project_id in catalog else "Unassigned"
        typer.echo(
            f"{record.id}  -> {best.manual_record.id} [{project}] "
            f"overlap {format_duration(best.overlap_seconds)}"
        )
    typer.echo(f"Assigned {result.assigned_count} / {len(usage)} usage records")


# -- check --------------------------------------------------------------------


@app.command("check")
def check_cmd(
    snapshot: str = typer.Option(..., "--snapshot", help="Path to a snapshot JSON file"),
    now: Optional[str] = typer.Option(None, "--now", help="Reference time for open records (ISO-8601)"),
) -> None:
    """Report input anomalies and overlapping manual records.

    Exits with code 1 when any error-severity finding is present.
    """
    from timetree.aggregate.duration import merged_duration, sum_duration
    from timetree.core.validation import validate_inputs
    from timetree.match.conflicts import find_manual_overlaps
    from timetree.report.format import format_duration

    ref = _parse_now(now)
    source = _load_source(snapshot, ref)

    manual = source.fetch_manual_records()
    report = validate_inputs(source.fetch_usage_records(), manual, source.fetch_projects())
    for finding in report.findings:
        typer.echo(f"[{finding.severity}] {finding.check}: {finding.message}")

    overlaps = find_manual_overlaps(manual, now=ref)
    for pair in overlaps:
        typer.echo(
            f"[overlap] {pair.first_id} / {pair.second_id}: "
            f"{format_duration(pair.overlap_seconds)}"
            + ("" if pair.same_project else " (different projects)")
        )
    if overlaps:
        double_counted = sum_duration(manual, now=ref) - merged_duration(manual, now=ref)
        typer.echo(f"Double-booked manual time: {format_duration(double_counted)}")

    typer.echo(
        f"{len(report.errors)} errors, {len(report.warnings)} warnings, "
        f"{len(overlaps)} manual overlaps"
    )
    if not report.ok:
        raise typer.Exit(code=1)


# -- export -------------------------------------------------------------------


@app.command("export")
def export_cmd(
    snapshot: str = typer.Option(..., "--snapshot", help="Path to a snapshot JSON file"),
    fmt: str = typer.Option("json", "--format", help="Output format: json, csv, parquet"),
    out: Optional[str] = typer.Option(None, "--out", help="Output file path"),
    redact_titles: bool = typer.Option(False, "--redact-titles", help="Replace window titles and notes in the output"),
    no_manual: bool = typer.Option(False, "--no-manual", help="Exclude manual records"),
    no_usage: bool = typer.Option(False, "--no-usage", help="Exclude usage records"),
    no_titles: bool = typer.Option(False, "--no-titles", help="Group usage by application name only"),
    period: Optional[str] = typer.Option(None, "--period", help="TimePeriod policy: single, idle-gap, day, daypart"),
    date: Optional[str] = typer.Option(None, "--date", help="Only records overlapping this day (YYYY-MM-DD)"),
    now: Optional[str] = typer.Option(None, "--now", help="Reference time for open records (ISO-8601)"),
    data_dir: str = typer.Option(DEFAULT_DATA_DIR, help="Directory holding view.json"),
) -> None:
    """Write the tree to a JSON, CSV, or Parquet file."""
    from timetree.report.export import export_tree_csv, export_tree_json, export_tree_parquet

    if fmt not in ("json", "csv", "parquet"):
        typer.echo(f"Unknown format: {fmt}", err=True)
        raise typer.Exit(code=1)

    groups, ref = _build(snapshot, data_dir, now, date, no_manual, no_usage, no_titles, period)
    out_path = Path(out) if out is not None else Path(DEFAULT_OUT_DIR) / f"tree.{fmt}"

    if fmt == "json":
        export_tree_json(groups, out_path, now=ref, redact_titles=redact_titles)
    elif fmt == "csv":
        export_tree_csv(groups, out_path, redact_titles=redact_titles)
    else:
        export_tree_parquet(groups, out_path, redact_titles=redact_titles)
    typer.echo(f"Wrote {fmt} tree to {out_path}")


# -- import -------------------------------------------------------------------
import_app = typer.Typer()
app.add_typer(import_app, name="import")


@import_app.command("aw")
def import_aw_cmd(
    input_file: str = typer.Option(..., "--input", help="Path to an ActivityWatch export JSON"),
    out: str = typer.Option(..., "--out", help="Snapshot file to create or extend"),
) -> None:
    """Import ActivityWatch window events as usage records into a snapshot."""
    from timetree.adapters.activitywatch import parse_aw_export
    from timetree.adapters.snapshot import Snapshot, load_snapshot, write_snapshot

    input_path = Path(input_file)
    if not input_path.exists():
        typer.echo(f"File not found: {input_path}", err=True)
        raise typer.Exit(code=1)

    records = parse_aw_export(input_path)
    out_path = Path(out)
    existing = load_snapshot(out_path) if out_path.exists() else Snapshot()

    known = {r.id for r in existing.usage_records}
    added = [r for r in records if r.id not in known]
    merged = existing.model_copy(update={"usage_records": [*existing.usage_records, *added]})
    write_snapshot(merged, out_path)
    typer.echo(f"Imported {len(added)} usage records ({len(records) - len(added)} already present) into {out_path}")


# -- config -------------------------------------------------------------------
config_app = typer.Typer()
app.add_typer(config_app, name="config")


@config_app.command("show")
def config_show_cmd(
    data_dir: str = typer.Option(DEFAULT_DATA_DIR, help="Directory holding view.json"),
) -> None:
    """Print the effective view settings."""
    from timetree.core.config import ViewConfig

    for key, value in ViewConfig(data_dir).as_dict().items():
        typer.echo(f"{key} = {value}")


@config_app.command("set")
def config_set_cmd(
    key: str = typer.Argument(..., help="Setting name"),
    value: str = typer.Argument(..., help="New value"),
    data_dir: str = typer.Option(DEFAULT_DATA_DIR, help="Directory holding view.json"),
) -> None:
    """Persist one view setting."""
    from timetree.core.config import ViewConfig

    cfg = ViewConfig(data_dir)
    try:
        cfg.update({key: value})
    except ValueError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1)
    typer.echo(f"{key} = {cfg.as_dict()[key]}")


@config_app.command("reset")
def config_reset_cmd(
    data_dir: str = typer.Option(DEFAULT_DATA_DIR, help="Directory holding view.json"),
) -> None:
    """Restore default view settings."""
    from timetree.core.config import ViewConfig

    ViewConfig(data_dir).reset()
    typer.echo("View settings reset to defaults")


if __name__ == "__main__":
    app()
