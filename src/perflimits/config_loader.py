"""Unified perflimits.toml configuration loader.

Parses ``perflimits.toml`` into the immutable options consumed by
:class:`perflimits.CompetitionAnalyser` and ``perflimits check``::

    [check]
    metrics = ["RelativeTime", "Time"]
    max_runs_allowed = 10

    [annotations]
    adjust_limits = true
    reruns_if_adjusted = 2
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

try:
    import tomllib  # Python 3.11+
except ModuleNotFoundError:  # pragma: no cover
    import tomli as tomllib  # type: ignore[no-redefine]

from .competition.options import CompetitionOptions, merge_options
from .core.exceptions import ConfigurationError

_SECTIONS = ("check", "annotations")


def _section(raw: dict[str, Any], name: str) -> dict[str, Any]:
    section = raw.get(name, {})
    if not isinstance(section, dict):
        raise ConfigurationError(f"[{name}] must be a table", config_name=name)
    if name == "check" and "metrics" in section:
        metrics = section["metrics"]
        if isinstance(metrics, str):
            metrics = [metrics]
        if not isinstance(metrics, list):
            raise ConfigurationError("metrics must be a list of metric ids", config_name=name)
        section = {**section, "metrics": tuple(str(m) for m in metrics)}
    return section


def options_from_dict(
    raw: dict[str, Any], base: CompetitionOptions | None = None
) -> CompetitionOptions:
    unknown = sorted(set(raw) - set(_SECTIONS))
    if unknown:
        raise ConfigurationError(f"unknown section(s): {', '.join(unknown)}")
    return merge_options(
        base,
        check=_section(raw, "check"),
        annotations=_section(raw, "annotations"),
    )


def load_config(path: str | Path = "perflimits.toml") -> CompetitionOptions:
    """Load and parse a ``perflimits.toml`` file.

    Parameters
    ----------
    path:
        Path to the TOML configuration file.  Defaults to
        ``perflimits.toml`` in the current directory.

    Returns
    -------
    CompetitionOptions
        Defaults overridden by the values of the ``[check]`` and
        ``[annotations]`` tables.

    Raises
    ------
    FileNotFoundError
        If the configuration file does not exist.
    ConfigurationError
        If a section or key is unknown or a value is out of range.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with config_path.open("rb") as f:
        raw = tomllib.load(f)

    return options_from_dict(raw)
