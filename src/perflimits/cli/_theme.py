"""Centralized color palette, Rich Theme, and shared constants."""

from __future__ import annotations

from dataclasses import dataclass

from rich.theme import Theme


@dataclass(frozen=True)
class ColorPalette:
    """Immutable color palette for the perflimits CLI.

    Designed for dark terminal backgrounds (~#1E1E2E).
    All text colors meet WCAG AA contrast ratio (>= 4.5:1).
    """

    primary: str = "#7AA2F7"
    success: str = "#A6E3A1"
    warning: str = "#F9E2AF"
    error: str = "#F38BA8"
    info: str = "#89DCEB"
    text: str = "#CDD6F4"
    text_muted: str = "#9399B2"
    border: str = "#585B70"


PALETTE = ColorPalette()

PL_THEME = Theme(
    {
        "pl.header": f"bold {PALETTE.primary}",
        "pl.label": f"bold {PALETTE.text}",
        "pl.muted": f"{PALETTE.text_muted}",
        # Status indicators
        "pl.pass": f"bold {PALETTE.success}",
        "pl.fail": f"bold {PALETTE.error}",
        "pl.warn": f"bold {PALETTE.warning}",
        "pl.info": f"{PALETTE.info}",
        "pl.ok": f"{PALETTE.success}",
        "pl.err": f"{PALETTE.error}",
        "pl.caution": f"{PALETTE.warning}",
        # Borders
        "pl.border": f"{PALETTE.border}",
        "pl.border.success": f"{PALETTE.success}",
        "pl.border.error": f"{PALETTE.error}",
    }
)

STATUS_ICONS: dict[str, str] = {
    "pass": "✓",
    "fail": "✗",
    "warn": "!",
    "info": "•",
}

SEVERITY_STYLES: dict[str, str] = {
    "INFORMATIONAL": "pl.muted",
    "WARNING": "pl.warn",
    "TEST_ERROR": "pl.fail",
    "SETUP_ERROR": "pl.fail",
    "CRITICAL_ERROR": "pl.fail",
}

PANEL_PADDING: tuple[int, int] = (1, 2)
