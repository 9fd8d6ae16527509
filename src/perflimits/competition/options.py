"""Immutable competition options with an explicit override function."""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from typing import Any

from ..core.exceptions import ConfigurationError
from .types import get_metric


@dataclass(frozen=True)
class CheckOptions:
    """How metrics are checked and how many runs a pass may take."""

    metrics: tuple[str, ...] = ("RelativeTime",)
    max_runs_allowed: int = 10
    reruns_if_validation_failed: int = 3

    def __post_init__(self) -> None:
        if isinstance(self.metrics, str):
            object.__setattr__(self, "metrics", (self.metrics,))
        else:
            object.__setattr__(self, "metrics", tuple(self.metrics))
        if not self.metrics:
            raise ConfigurationError("at least one metric must be checked", config_name="check")
        for metric_id in self.metrics:
            get_metric(metric_id)
        if self.max_runs_allowed < 1:
            raise ConfigurationError(
                f"max_runs_allowed must be >= 1, got {self.max_runs_allowed!r}",
                config_name="check",
            )
        if self.reruns_if_validation_failed < 0:
            raise ConfigurationError(
                "reruns_if_validation_failed must be non-negative, "
                f"got {self.reruns_if_validation_failed!r}",
                config_name="check",
            )


@dataclass(frozen=True)
class AnnotationOptions:
    """Whether and how limits are adjusted and written back."""

    adjust_limits: bool = False
    force_adjust_empty_limits: bool = True
    skip_runs_before_adjustment: int = 0
    reruns_if_adjusted: int = 2
    loose_limits_by_percent: float = 0.0
    dont_save: bool = False
    previous_run_log_uri: str | None = None
    log_annotations: bool = False

    def __post_init__(self) -> None:
        if self.skip_runs_before_adjustment < 0:
            raise ConfigurationError(
                "skip_runs_before_adjustment must be non-negative, "
                f"got {self.skip_runs_before_adjustment!r}",
                config_name="annotations",
            )
        if self.reruns_if_adjusted < 0:
            raise ConfigurationError(
                f"reruns_if_adjusted must be non-negative, got {self.reruns_if_adjusted!r}",
                config_name="annotations",
            )
        if not 0.0 <= self.loose_limits_by_percent < 100.0:
            raise ConfigurationError(
                "loose_limits_by_percent must be in [0, 100), "
                f"got {self.loose_limits_by_percent!r}",
                config_name="annotations",
            )


@dataclass(frozen=True)
class CompetitionOptions:
    check: CheckOptions = field(default_factory=CheckOptions)
    annotations: AnnotationOptions = field(default_factory=AnnotationOptions)


def _override(section: Any, overrides: dict[str, Any] | None, name: str) -> Any:
    if not overrides:
        return section
    known = {f.name for f in fields(section)}
    unknown = sorted(set(overrides) - known)
    if unknown:
        raise ConfigurationError(f"unknown option(s): {', '.join(unknown)}", config_name=name)
    return replace(section, **overrides)


def merge_options(
    base: CompetitionOptions | None = None,
    *,
    check: dict[str, Any] | None = None,
    annotations: dict[str, Any] | None = None,
) -> CompetitionOptions:
    """Return ``base`` (or the defaults) with the given per-section overrides applied."""
    base = base or CompetitionOptions()
    return CompetitionOptions(
        check=_override(base.check, check, "check"),
        annotations=_override(base.annotations, annotations, "annotations"),
    )
