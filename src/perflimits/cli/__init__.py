"""perflimits CLI package."""

from __future__ import annotations

from ._app import app as app  # noqa: F401
from ._app import console as console  # noqa: F401


def _register_commands() -> None:
    """Register command modules in desired help-panel order."""
    # isort: off
    from . import _check  # noqa: F401  Competition
    from . import _log  # noqa: F401
    # isort: on


_register_commands()
