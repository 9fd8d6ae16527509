"""The ``check`` command and helpers."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import typer
from rich.markup import escape

from perflimits.competition.analyser import CompetitionAnalyser
from perflimits.competition.options import CompetitionOptions, merge_options
from perflimits.competition.state import CompetitionResult
from perflimits.competition.summary import load_run_summaries, replay
from perflimits.config_loader import load_config
from perflimits.core.exceptions import ConfigurationError, ValidationError
from perflimits.metrics.formatting import format_range

from ._app import app, console
from ._rich_output import key_value_panel, limits_table, message_table, result_banner
from ._utils import _load_benchmarks


def _resolve_options(
    config: Path | None,
    *,
    metrics: list[str] | None,
    adjust: bool | None,
    dont_save: bool,
    max_runs: int | None,
    previous_log: str | None,
    log_annotations: bool,
) -> CompetitionOptions:
    base = load_config(config) if config is not None else None
    check: dict[str, Any] = {}
    annotations: dict[str, Any] = {}
    if metrics:
        check["metrics"] = tuple(metrics)
    if max_runs is not None:
        check["max_runs_allowed"] = max_runs
    if adjust is not None:
        annotations["adjust_limits"] = adjust
    if dont_save:
        annotations["dont_save"] = True
    if previous_log:
        annotations["previous_run_log_uri"] = previous_log
    if log_annotations:
        annotations["log_annotations"] = True
    return merge_options(base, check=check, annotations=annotations)


@app.command(rich_help_panel="Competition")
def check(
    samples: Path = typer.Argument(
        ..., help="JSON or YAML file with the recorded samples of one or more runs."
    ),
    benchmarks: list[Path] = typer.Option(
        ...,
        "--benchmarks",
        "-b",
        help="Python file declaring the benchmarks. Repeat for several files.",
    ),
    config: Path | None = typer.Option(
        None, "--config", "-c", help="perflimits.toml with [check] and [annotations] tables."
    ),
    metrics: list[str] | None = typer.Option(
        None, "--metric", "-m", help="Metric to check (RelativeTime, Time, Allocations)."
    ),
    adjust: bool | None = typer.Option(
        None, "--adjust/--no-adjust", help="Adjust limits that the measurements do not fit."
    ),
    dont_save: bool = typer.Option(
        False, "--dont-save", help="Adjust limits in memory only; never rewrite files."
    ),
    max_runs: int | None = typer.Option(None, "--max-runs", help="Upper bound on runs."),
    previous_log: str | None = typer.Option(
        None, "--previous-log", help="Path or http(s) URL of a log with annotation blocks."
    ),
    log_annotations: bool = typer.Option(
        False, "--log-annotations", help="Always write the final limits to the log."
    ),
    format: str = typer.Option("rich", "--format", help="Output format: rich (default) or json."),
    output: Path | None = typer.Option(
        None, "--output", "-o", help="Output file path for json format."
    ),
) -> None:
    """Check recorded benchmark runs against their limits.

    Sample keys look like [bold]<file stem>:<qualname>[/bold], e.g.
    [bold]bench_parse:ParseSuite.bench_json[/bold].

    [dim]Examples:[/dim]
      perflimits check runs.json -b bench_parse.py
      perflimits check runs.json -b bench_parse.py --adjust --dont-save
      perflimits check runs.json -b bench_parse.py -c perflimits.toml --format json
    """
    if format not in {"rich", "json"}:
        console.print(
            f"[pl.fail]Unknown format:[/pl.fail] {escape(format)}. Use one of: rich, json."
        )
        raise typer.Exit(code=1)

    try:
        options = _resolve_options(
            config,
            metrics=metrics,
            adjust=adjust,
            dont_save=dont_save,
            max_runs=max_runs,
            previous_log=previous_log,
            log_annotations=log_annotations,
        )
        summaries = load_run_summaries(samples)
    except (FileNotFoundError, ConfigurationError, ValidationError, ValueError) as exc:
        console.print(f"[pl.fail]Invalid input:[/pl.fail] {escape(str(exc))}")
        raise typer.Exit(code=1) from None

    try:
        declared = _load_benchmarks(benchmarks)
    except (ImportError, OSError, SyntaxError, ValueError) as exc:
        console.print(f"[pl.fail]Failed to load benchmarks:[/pl.fail] {escape(str(exc))}")
        raise typer.Exit(code=1) from None
    if not declared:
        console.print(
            "[pl.fail]No benchmarks found.[/pl.fail] Decorate them with @competition_benchmark."
        )
        raise typer.Exit(code=1)

    if format == "rich":
        console.print(
            key_value_panel(
                {
                    "Benchmarks": len(declared),
                    "Recorded runs": len(summaries),
                    "Metrics": ", ".join(options.check.metrics),
                    "Max runs": options.check.max_runs_allowed,
                    "Adjust limits": options.annotations.adjust_limits,
                },
                title="Competition",
            )
        )

    result = CompetitionAnalyser(options).run(declared, replay(summaries))

    if format == "json":
        _emit_check_json(result, output)
    else:
        _print_check_result(result)

    if not result.passed:
        raise typer.Exit(code=1)


def _emit_check_json(result: CompetitionResult, output: Path | None) -> None:
    json_str = json.dumps(result.to_dict(), indent=2)
    if output is not None:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(json_str + "\n", encoding="utf-8")
        console.print(f"[pl.ok]Results written to:[/pl.ok] {output.resolve()}")
    else:
        console.print(json_str, markup=False, highlight=False, soft_wrap=True)


def _print_check_result(result: CompetitionResult) -> None:
    rows = [
        (
            f"{m.run_number}.{m.message_number}",
            m.severity.name,
            m.target or "",
            m.text,
        )
        for m in result.messages
    ]
    if rows:
        console.print(message_table(rows, title="Messages"))

    limit_rows: list[tuple[str, str, str, bool]] = []
    for target in result.targets:
        for metric_id, value in target.metric_values.items():
            if value.values_range.is_empty and not value.has_unsaved_changes:
                continue
            limit_rows.append(
                (
                    str(target.key),
                    metric_id,
                    format_range(value.values_range, value.display_unit),
                    value.has_unsaved_changes,
                )
            )
    if limit_rows:
        console.print(limits_table(limit_rows, title="Limits"))

    if result.annotation_log:
        console.print(result.annotation_log, markup=False, highlight=False, soft_wrap=True)

    errors = [m for m in result.messages if m.severity.is_error]
    lines = [
        f"Runs:     {result.run_count}",
        f"Targets:  {len(result.targets)}",
        f"Errors:   {len(errors)}",
    ]
    console.print(result_banner(passed=result.passed, lines=lines))

