"""Competition targets, metric values and the metric catalogue."""

from __future__ import annotations

import math
from dataclasses import dataclass, field

from ..core.exceptions import ConfigurationError, ContractViolationError
from ..metrics.calculator import P50, P85, PercentileCalculator
from ..metrics.formatting import format_range
from ..metrics.ranges import EMPTY_RANGE, MetricRange
from ..metrics.units import (
    EMPTY_SCALE,
    EMPTY_UNIT,
    SIZE_SCALE,
    TIME_SCALE,
    MetricUnit,
    MetricUnitScale,
)


@dataclass(frozen=True)
class MetricInfo:
    """Static description of one checked metric."""

    metric_id: str
    display_name: str
    directive: str
    xml_suffix: str
    sample_kind: str
    is_relative: bool
    units: MetricUnitScale = field(default=EMPTY_SCALE, compare=False)
    calculator: PercentileCalculator = P50

    @property
    def xml_min_attribute(self) -> str:
        return f"Min{self.xml_suffix}"

    @property
    def xml_max_attribute(self) -> str:
        return f"Max{self.xml_suffix}"

    @property
    def xml_unit_attribute(self) -> str:
        return f"{self.xml_suffix}Unit"

    @property
    def has_units(self) -> bool:
        return not self.units.is_empty


RELATIVE_TIME = MetricInfo(
    metric_id="RelativeTime",
    display_name="Relative time",
    directive="competition_limit",
    xml_suffix="Ratio",
    sample_kind="time",
    is_relative=True,
)
TIME = MetricInfo(
    metric_id="Time",
    display_name="Time",
    directive="expected_time",
    xml_suffix="Time",
    sample_kind="time",
    is_relative=False,
    units=TIME_SCALE,
)
ALLOCATIONS = MetricInfo(
    metric_id="Allocations",
    display_name="Allocations",
    directive="expected_allocations",
    xml_suffix="Bytes",
    sample_kind="allocations",
    is_relative=False,
    units=SIZE_SCALE,
    calculator=P85,
)

METRICS: dict[str, MetricInfo] = {
    metric.metric_id: metric for metric in (RELATIVE_TIME, TIME, ALLOCATIONS)
}


def get_metric(metric_id: str) -> MetricInfo:
    try:
        return METRICS[metric_id]
    except KeyError:
        raise ConfigurationError(
            f"unknown metric {metric_id!r}; available: {sorted(METRICS)}",
            config_name="metrics",
        ) from None


def _json_bound(value: float) -> float | None:
    return None if math.isnan(value) else value


@dataclass(frozen=True)
class TargetKey:
    """Stable identity of a benchmark function within one pass."""

    module: str
    qualname: str

    @property
    def name(self) -> str:
        return self.qualname.rsplit(".", 1)[-1]

    @property
    def container(self) -> str:
        """``module`` for top-level functions, ``module.Class`` for methods."""
        if "." not in self.qualname:
            return self.module
        return f"{self.module}.{self.qualname.rsplit('.', 1)[0]}"

    @classmethod
    def parse(cls, text: str) -> TargetKey:
        module, sep, qualname = text.partition(":")
        if not sep or not module or not qualname:
            raise ValueError(f"target key must look like 'module:qualname', got {text!r}")
        return cls(module, qualname)

    def __str__(self) -> str:
        return f"{self.module}:{self.qualname}"


@dataclass(eq=False)
class CompetitionMetricValue:
    """Current limit for one metric of one target."""

    metric: MetricInfo
    values_range: MetricRange = EMPTY_RANGE
    display_unit: MetricUnit = EMPTY_UNIT
    has_unsaved_changes: bool = False

    def union_with(self, other: CompetitionMetricValue, force_unit_update: bool = False) -> bool:
        """Merge ``other`` into this value; return whether anything changed."""
        if other.metric.metric_id != self.metric.metric_id:
            raise ContractViolationError(
                f"cannot merge metric {other.metric.metric_id!r} into {self.metric.metric_id!r}"
            )
        if other.values_range.is_empty:
            return False

        changed = False
        merged = self.values_range.union(other.values_range)
        if merged != self.values_range:
            self.values_range = merged
            changed = True

        if self.display_unit.is_empty or force_unit_update:
            unit = other.display_unit
            if unit.is_empty:
                unit = self.metric.units.unit_for_range(self.values_range)
            if unit != self.display_unit:
                self.display_unit = unit
                changed = True

        if changed:
            self.has_unsaved_changes = True
        return changed

    def mark_as_saved(self) -> None:
        self.has_unsaved_changes = False

    def __str__(self) -> str:
        return f"{self.metric.metric_id} {format_range(self.values_range, self.display_unit)}"


@dataclass(eq=False)
class CompetitionTarget:
    """All metric values of one benchmark in a pass."""

    key: TargetKey
    is_baseline: bool = False
    metric_values: dict[str, CompetitionMetricValue] = field(default_factory=dict)

    def add_metric_value(self, value: CompetitionMetricValue) -> None:
        metric_id = value.metric.metric_id
        if metric_id in self.metric_values:
            raise ContractViolationError(f"target {self.key} already has metric {metric_id!r}")
        self.metric_values[metric_id] = value

    def get(self, metric_id: str) -> CompetitionMetricValue | None:
        return self.metric_values.get(metric_id)

    @property
    def has_unsaved_changes(self) -> bool:
        return any(value.has_unsaved_changes for value in self.metric_values.values())

    def mark_as_saved(self) -> None:
        for value in self.metric_values.values():
            value.mark_as_saved()

    def to_dict(self) -> dict[str, object]:
        return {
            "target": str(self.key),
            "baseline": self.is_baseline,
            "metrics": {
                metric_id: {
                    "min": _json_bound(value.values_range.min),
                    "max": _json_bound(value.values_range.max),
                    "unit": value.display_unit.display_name,
                    "unsaved": value.has_unsaved_changes,
                }
                for metric_id, value in self.metric_values.items()
            },
        }
