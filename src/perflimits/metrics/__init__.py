"""Metric ranges, units and percentile estimators."""

from .calculator import P50, P85, PercentileCalculator, lognormal_ratio_variance
from .formatting import contains_with_rounding, format_range, format_value, round_range
from .ranges import EMPTY_RANGE, IGNORED, MetricRange, is_ignored_value
from .units import (
    EMPTY_SCALE,
    EMPTY_UNIT,
    SIZE_SCALE,
    TIME_SCALE,
    MetricUnit,
    MetricUnitScale,
    SizeUnit,
    TimeUnit,
)

__all__ = [
    "EMPTY_RANGE",
    "EMPTY_SCALE",
    "EMPTY_UNIT",
    "IGNORED",
    "P50",
    "P85",
    "SIZE_SCALE",
    "TIME_SCALE",
    "MetricRange",
    "MetricUnit",
    "MetricUnitScale",
    "PercentileCalculator",
    "SizeUnit",
    "TimeUnit",
    "contains_with_rounding",
    "format_range",
    "format_value",
    "is_ignored_value",
    "lognormal_ratio_variance",
    "round_range",
]
