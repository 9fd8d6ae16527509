"""The ``log`` command: list the limits embedded in a previous run's log."""

from __future__ import annotations

import typer
from rich.markup import escape
from rich.table import Table

from perflimits.annotations.log_reader import parse_log_text, read_log_text
from perflimits.annotations.xml_storage import CANDIDATE_TAG, COMPETITION_TAG, TARGET_ATTRIBUTE
from perflimits.core.exceptions import AnnotationFormatError

from ._app import app, console


@app.command(rich_help_panel="Competition")
def log(
    uri: str = typer.Argument(..., help="Path or http(s) URL of the log."),
) -> None:
    """Show the limits stored in the annotation blocks of a log.

    [dim]Examples:[/dim]
      perflimits log build.log
      perflimits log https://ci.example.com/job/42/consoleText
    """
    try:
        documents = parse_log_text(read_log_text(uri), uri)
    except AnnotationFormatError as exc:
        console.print(f"[pl.fail]Cannot read log:[/pl.fail] {escape(str(exc))}")
        raise typer.Exit(code=1) from None

    if not documents:
        console.print(f"[pl.warn]No annotation blocks found in[/pl.warn] {escape(uri)}")
        raise typer.Exit(code=1)

    table = Table(title=f"Annotations ({len(documents)} block(s))")
    table.add_column("Block", justify="right")
    table.add_column("Container", style="pl.label")
    table.add_column("Candidate")
    table.add_column("Limits")
    for number, root in enumerate(documents, start=1):
        for competition in root.findall(COMPETITION_TAG):
            for candidate in competition.findall(CANDIDATE_TAG):
                limits = " ".join(
                    f"{name}={value}"
                    for name, value in candidate.attrib.items()
                    if name != TARGET_ATTRIBUTE
                )
                table.add_row(
                    str(number),
                    escape(competition.get(TARGET_ATTRIBUTE, "")),
                    escape(candidate.get(TARGET_ATTRIBUTE, "")),
                    escape(limits),
                )
    console.print(table)
