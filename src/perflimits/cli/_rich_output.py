"""Theme-aware Rich rendering helpers shared across all CLI commands."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from rich.box import ROUNDED
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from ._theme import PANEL_PADDING, SEVERITY_STYLES, STATUS_ICONS


def key_value_panel(
    data: dict[str, Any],
    *,
    title: str | None = None,
    border: str = "pl.border",
) -> Panel:
    """Render a dict as an aligned key-value panel."""
    max_key_len = max((len(str(k)) for k in data), default=0)
    lines: list[str] = []
    for key, value in data.items():
        padded = str(key).ljust(max_key_len)
        lines.append(f"[pl.label]{padded}[/pl.label]  {value}")
    return Panel(
        "\n".join(lines),
        title=title,
        border_style=border,
        box=ROUNDED,
        padding=PANEL_PADDING,
    )


def result_banner(
    *,
    passed: bool,
    title: str | None = None,
    lines: Sequence[str] = (),
) -> Panel:
    """Render a PASS / FAIL banner panel."""
    if passed:
        default_title = f"{STATUS_ICONS['pass']} PASS"
        border = "pl.border.success"
    else:
        default_title = f"{STATUS_ICONS['fail']} FAIL"
        border = "pl.border.error"

    return Panel(
        "\n".join(lines),
        title=title or default_title,
        border_style=border,
        box=ROUNDED,
        padding=PANEL_PADDING,
    )


def limits_table(
    rows: Sequence[tuple[str, str, str, bool]],
    *,
    title: str | None = None,
) -> Table:
    """Render a limits table; each row is ``(target, metric, limit, unsaved)``."""
    table = Table(title=title)
    table.add_column("Target", style="pl.label")
    table.add_column("Metric")
    table.add_column("Limit", justify="right")
    table.add_column("Status")

    for target, metric, limit, unsaved in rows:
        if unsaved:
            status = f"[pl.err]{STATUS_ICONS['fail']}[/pl.err] [pl.fail]unsaved[/pl.fail]"
        else:
            status = f"[pl.ok]{STATUS_ICONS['pass']}[/pl.ok] [pl.pass]ok[/pl.pass]"
        table.add_row(escape(target), metric, escape(limit), status)

    return table


def message_table(
    rows: Sequence[tuple[str, str, str, str]],
    *,
    title: str | None = None,
) -> Table:
    """Render competition messages; each row is ``(number, severity, target, text)``."""
    table = Table(title=title, show_lines=False)
    table.add_column("#", no_wrap=True)
    table.add_column("Severity", no_wrap=True)
    table.add_column("Target", style="pl.muted")
    table.add_column("Message")

    for number, severity, target, text in rows:
        style = SEVERITY_STYLES.get(severity, "")
        label = severity.replace("_", " ").title()
        table.add_row(
            number,
            f"[{style}]{label}[/{style}]" if style else label,
            escape(target),
            escape(text),
        )

    return table
