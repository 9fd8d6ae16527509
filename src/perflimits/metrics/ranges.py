"""Range algebra over metric values with empty, ignored and unbounded sentinels."""

from __future__ import annotations

import math
from dataclasses import dataclass

EMPTY_VALUE = math.nan
IGNORED = -1.0


def is_ignored_value(value: float) -> bool:
    """Return ``True`` for a finite negative bound (never fails a check)."""
    return math.isfinite(value) and value < 0


def _normalize_bound(value: float | None, default: float) -> float:
    if value is None:
        return default
    value = float(value)
    if is_ignored_value(value):
        return IGNORED
    return value


def _lower_contains(outer: float, inner: float) -> bool:
    if is_ignored_value(outer):
        return True
    if is_ignored_value(inner):
        return False
    return outer <= inner


def _upper_contains(outer: float, inner: float) -> bool:
    if is_ignored_value(outer):
        return True
    if is_ignored_value(inner):
        return False
    return inner <= outer


def _union_bound(left: float, right: float, pick) -> float:
    if is_ignored_value(left) or is_ignored_value(right):
        return IGNORED
    return pick(left, right)


@dataclass(frozen=True, eq=False)
class MetricRange:
    """Closed ``[min, max]`` interval.

    ``NaN`` on either side makes the whole range empty (unset, updatable). A finite
    negative bound is *ignored* and never fails a check. ``-inf``/``+inf`` mark an
    unbounded side.
    """

    min: float = EMPTY_VALUE
    max: float = EMPTY_VALUE

    def __post_init__(self) -> None:
        lo = float(self.min)
        hi = float(self.max)
        if math.isnan(lo) or math.isnan(hi):
            lo = hi = EMPTY_VALUE
        else:
            lo = _normalize_bound(lo, -math.inf)
            hi = _normalize_bound(hi, math.inf)
            if not is_ignored_value(lo) and not is_ignored_value(hi) and lo > hi:
                raise ValueError(f"MetricRange min must not exceed max, got [{lo}, {hi}]")
        object.__setattr__(self, "min", lo)
        object.__setattr__(self, "max", hi)

    @classmethod
    def create(cls, min: float | None = None, max: float | None = None) -> MetricRange:
        """Build a range; a missing side is unbounded."""
        return cls(
            _normalize_bound(min, -math.inf),
            _normalize_bound(max, math.inf),
        )

    @property
    def is_empty(self) -> bool:
        return math.isnan(self.min)

    @property
    def min_is_ignored(self) -> bool:
        return is_ignored_value(self.min)

    @property
    def max_is_ignored(self) -> bool:
        return is_ignored_value(self.max)

    @property
    def min_is_infinite(self) -> bool:
        return math.isinf(self.min)

    @property
    def max_is_infinite(self) -> bool:
        return math.isinf(self.max)

    def contains(self, other: MetricRange) -> bool:
        """Interval containment; an empty range is contained only by an empty range."""
        if other.is_empty:
            return self.is_empty
        if self.is_empty:
            return False
        return _lower_contains(self.min, other.min) and _upper_contains(self.max, other.max)

    def union(self, other: MetricRange) -> MetricRange:
        """Return the widest range covering both; ``self`` when it already contains ``other``."""
        if self.contains(other):
            return self
        if other.contains(self):
            return other
        if self.is_empty:
            return other
        if other.is_empty:
            return self
        return MetricRange(
            _union_bound(self.min, other.min, min),
            _union_bound(self.max, other.max, max),
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MetricRange):
            return NotImplemented
        if self.is_empty or other.is_empty:
            return self.is_empty and other.is_empty
        return self.min == other.min and self.max == other.max

    def __hash__(self) -> int:
        if self.is_empty:
            return hash(("MetricRange", None))
        return hash(("MetricRange", self.min, self.max))

    def __str__(self) -> str:
        if self.is_empty:
            return "[empty]"
        return f"[{_bound_text(self.min)}..{_bound_text(self.max)}]"


def _bound_text(value: float) -> str:
    if is_ignored_value(value):
        return "ignored"
    if math.isinf(value):
        return "-inf" if value < 0 else "+inf"
    return f"{value:g}"


EMPTY_RANGE = MetricRange()
