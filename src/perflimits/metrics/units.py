"""Metric units and ordered unit scales."""

from __future__ import annotations

import bisect
import math
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, replace
from enum import Enum

from ..core.exceptions import ConfigurationError
from .ranges import MetricRange, is_ignored_value


class TimeUnit(str, Enum):
    NANOSECOND = "ns"
    MICROSECOND = "us"
    MILLISECOND = "ms"
    SECOND = "s"


class SizeUnit(str, Enum):
    BYTE = "B"
    KILOBYTE = "KB"
    MEGABYTE = "MB"
    GIGABYTE = "GB"


@dataclass(frozen=True)
class MetricUnit:
    """A display unit: raw values are divided by ``scale_coefficient`` for display."""

    display_name: str
    tag: Enum | None = None
    scale_coefficient: float = 1.0
    applies_from: float = 0.0
    rounding_digits: int | None = None

    @property
    def is_empty(self) -> bool:
        return not self.display_name

    def __str__(self) -> str:
        return self.display_name


EMPTY_UNIT = MetricUnit("")


class MetricUnitScale:
    """Ordered, non-overlapping set of units keyed by ascending threshold.

    The lowest unit is extended to cover ``0``. Thresholds must be given in strictly
    increasing order.
    """

    def __init__(self, units: Iterable[MetricUnit] = (), *, name: str | None = None):
        items = list(units)
        for previous, current in zip(items, items[1:]):
            if not current.applies_from > previous.applies_from:
                raise ConfigurationError(
                    "unit thresholds must be strictly increasing, "
                    f"got {previous.display_name}={previous.applies_from} "
                    f"then {current.display_name}={current.applies_from}",
                    config_name=name,
                )
        if items:
            items[0] = replace(items[0], applies_from=0.0)

        self.name = name
        self._units: tuple[MetricUnit, ...] = tuple(items)
        self._thresholds = [unit.applies_from for unit in self._units]
        self._by_tag: dict[Enum, MetricUnit] = {}
        self._by_name: dict[str, MetricUnit] = {}
        for unit in self._units:
            if unit.is_empty:
                raise ConfigurationError("unit display name must not be empty", config_name=name)
            key = unit.display_name.casefold()
            if key in self._by_name:
                raise ConfigurationError(
                    f"duplicate unit name {unit.display_name!r}", config_name=name
                )
            self._by_name[key] = unit
            if unit.tag is not None:
                self._by_tag[unit.tag] = unit

    def __iter__(self) -> Iterator[MetricUnit]:
        return iter(self._units)

    def __len__(self) -> int:
        return len(self._units)

    @property
    def is_empty(self) -> bool:
        return not self._units

    @property
    def default_unit(self) -> MetricUnit:
        return self._units[0] if self._units else EMPTY_UNIT

    def __getitem__(self, tag: Enum) -> MetricUnit:
        return self._by_tag[tag]

    def find(self, name: str) -> MetricUnit | None:
        """Look up a unit by case-insensitive display name."""
        return self._by_name.get(name.strip().casefold())

    def unit_for(self, value: float) -> MetricUnit:
        """Pick the last unit whose threshold is ``<= |value|``."""
        if not self._units:
            return EMPTY_UNIT
        if math.isnan(value) or math.isinf(value):
            return self._units[0]
        index = bisect.bisect_right(self._thresholds, abs(value)) - 1
        return self._units[max(index, 0)]

    def unit_for_range(self, values: MetricRange) -> MetricUnit:
        """Pick a unit for a range, probing with the smaller magnitude bound."""
        if not self._units:
            return EMPTY_UNIT
        if values.is_empty:
            return self._units[0]
        probes = [
            abs(bound)
            for bound in (values.min, values.max)
            if math.isfinite(bound) and not is_ignored_value(bound)
        ]
        if not probes:
            return self._units[0]
        return self.unit_for(min(probes))

    def __repr__(self) -> str:
        names = ", ".join(unit.display_name for unit in self._units)
        return f"MetricUnitScale([{names}])"


EMPTY_SCALE = MetricUnitScale(name="empty")

TIME_SCALE = MetricUnitScale(
    [
        MetricUnit("ns", TimeUnit.NANOSECOND, 1.0, 1.0),
        MetricUnit("us", TimeUnit.MICROSECOND, 1e3, 1e3),
        MetricUnit("ms", TimeUnit.MILLISECOND, 1e6, 1e6),
        MetricUnit("s", TimeUnit.SECOND, 1e9, 1e9),
    ],
    name="time",
)

SIZE_SCALE = MetricUnitScale(
    [
        MetricUnit("B", SizeUnit.BYTE, 1.0, 1.0, rounding_digits=0),
        MetricUnit("KB", SizeUnit.KILOBYTE, 1024.0, 1024.0),
        MetricUnit("MB", SizeUnit.MEGABYTE, 1024.0**2, 1024.0**2),
        MetricUnit("GB", SizeUnit.GIGABYTE, 1024.0**3, 1024.0**3),
    ],
    name="size",
)
