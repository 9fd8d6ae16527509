"""Display-precision helpers: scaling, rounding and rounding-aware containment."""

from __future__ import annotations

import math

from .ranges import MetricRange, is_ignored_value
from .units import MetricUnit

DEFAULT_ROUNDING_DIGITS = 2


def rounding_digits(unit: MetricUnit) -> int:
    if unit.rounding_digits is not None:
        return unit.rounding_digits
    return DEFAULT_ROUNDING_DIGITS


def _scale_bound(value: float, unit: MetricUnit, digits: int) -> float:
    if is_ignored_value(value) or math.isinf(value):
        return value
    return round(value / unit.scale_coefficient, digits)


def round_range(values: MetricRange, unit: MetricUnit) -> MetricRange:
    """Scale a raw range into ``unit`` and round it to the unit's display digits."""
    if values.is_empty:
        return values
    digits = rounding_digits(unit)
    return MetricRange(
        _scale_bound(values.min, unit, digits),
        _scale_bound(values.max, unit, digits),
    )


def contains_with_rounding(limit: MetricRange, actual: MetricRange, unit: MetricUnit) -> bool:
    """Check containment as it would look once both ranges are displayed in ``unit``."""
    return round_range(limit, unit).contains(round_range(actual, unit))


def format_value(value: float, unit: MetricUnit) -> str:
    """Render a raw bound scaled to ``unit`` (no unit suffix)."""
    if is_ignored_value(value):
        return "ignored"
    if math.isinf(value):
        return "-inf" if value < 0 else "+inf"
    digits = rounding_digits(unit)
    return f"{value / unit.scale_coefficient:.{digits}f}"


def format_range(values: MetricRange, unit: MetricUnit) -> str:
    if values.is_empty:
        return "[empty]"
    text = f"[{format_value(values.min, unit)}..{format_value(values.max, unit)}]"
    if unit.is_empty:
        return text
    return f"{text} {unit.display_name}"
