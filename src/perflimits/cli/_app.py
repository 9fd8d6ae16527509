"""App definition and root callback for the perflimits CLI."""

from __future__ import annotations

import logging

import typer
from rich.console import Console

from ._theme import PL_THEME

app = typer.Typer(
    help="Check benchmark results against statistical limits and keep the limits up to date.",
    epilog=(
        "[dim]Common workflows:\n"
        "  Check recorded runs    → perflimits check runs.json --benchmarks bench_parse.py\n"
        "  Adjust and save limits → perflimits check runs.json -b bench_parse.py --adjust\n"
        "  Inspect a run log      → perflimits log build.log[/dim]"
    ),
    rich_markup_mode="rich",
    no_args_is_help=True,
)

console = Console(theme=PL_THEME)


def _version_callback(value: bool) -> None:
    if value:
        import platform

        import numpy as np

        from perflimits import __version__

        console.print(
            f"perflimits [bold]{__version__}[/bold]  "
            f"(Python {platform.python_version()}, NumPy {np.__version__})"
        )
        raise typer.Exit()


def _debug_callback(debug: bool) -> None:
    """Enable debug logging when --debug is passed."""
    if debug:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s %(levelname)s %(message)s")


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging."),
) -> None:
    """perflimits command-line interface."""
    _debug_callback(debug)
