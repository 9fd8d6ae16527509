"""Percentile estimators turning raw samples into actual and limit ranges."""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np

from ..core.exceptions import ConfigurationError
from .ranges import EMPTY_RANGE, MetricRange

LOG_FLOOR = 1e-9


def _as_array(samples: Sequence[float] | np.ndarray | None) -> np.ndarray:
    if samples is None:
        return np.empty(0, dtype=np.float64)
    return np.asarray(samples, dtype=np.float64).reshape(-1)


def _clamp_percentile(value: float) -> float:
    return min(max(value, 0.0), 100.0)


def _percentile(arr: np.ndarray, percentile: float) -> float:
    return float(np.percentile(arr, _clamp_percentile(percentile)))


def _variance(arr: np.ndarray) -> float:
    if arr.size < 2:
        return 0.0
    return float(arr.var(ddof=1))


def lognormal_ratio_variance(samples: np.ndarray, baseline: np.ndarray) -> float:
    """Variance of ``samples / baseline`` assuming both are log-normally distributed.

    Non-positive values are floored at ``LOG_FLOOR`` before taking the log.
    """
    log_samples = np.log(np.maximum(samples, LOG_FLOOR))
    log_baseline = np.log(np.maximum(baseline, LOG_FLOOR))
    mu = float(log_samples.mean() - log_baseline.mean())
    sigma2 = _variance(log_samples) + _variance(log_baseline)
    return math.exp(2 * mu + 2 * sigma2) - math.exp(2 * mu + sigma2)


@dataclass(frozen=True)
class PercentileCalculator:
    """Percentile-based estimator.

    Parameters
    ----------
    mean_percentile:
        Percentile used as the central value.
    actual_delta:
        Half-width, in percentiles, of the *actual values* range.
    limit_delta:
        Half-width of the *limit values* range; must be ``>= actual_delta``.
    """

    mean_percentile: float = 50.0
    actual_delta: float = 5.0
    limit_delta: float = 15.0

    def __post_init__(self) -> None:
        if not 0.0 <= self.mean_percentile <= 100.0:
            raise ConfigurationError(
                f"mean_percentile must be in [0, 100], got {self.mean_percentile!r}",
                config_name="calculator",
            )
        if self.actual_delta < 0:
            raise ConfigurationError(
                f"actual_delta must be non-negative, got {self.actual_delta!r}",
                config_name="calculator",
            )
        if self.limit_delta < self.actual_delta:
            raise ConfigurationError(
                f"limit_delta ({self.limit_delta!r}) must be >= "
                f"actual_delta ({self.actual_delta!r})",
                config_name="calculator",
            )

    def try_get_mean_value(self, samples: Sequence[float] | np.ndarray | None) -> float | None:
        arr = _as_array(samples)
        if arr.size == 0:
            return None
        return _percentile(arr, self.mean_percentile)

    def try_get_relative_mean_value(
        self,
        samples: Sequence[float] | np.ndarray | None,
        baseline: Sequence[float] | np.ndarray | None,
    ) -> float | None:
        """Ratio of the central percentiles; ``None`` on empty input or a zero baseline."""
        arr = _as_array(samples)
        base = _as_array(baseline)
        if arr.size == 0 or base.size == 0:
            return None
        base_mean = _percentile(base, self.mean_percentile)
        if base_mean == 0:
            return None
        return _percentile(arr, self.mean_percentile) / base_mean

    def try_get_actual_values(
        self,
        samples: Sequence[float] | np.ndarray | None,
        baseline: Sequence[float] | np.ndarray | None = None,
    ) -> MetricRange:
        return self._range(samples, baseline, self.actual_delta)

    def try_get_limit_values(
        self,
        samples: Sequence[float] | np.ndarray | None,
        baseline: Sequence[float] | np.ndarray | None = None,
    ) -> MetricRange:
        return self._range(samples, baseline, self.limit_delta)

    def try_get_variance(
        self,
        samples: Sequence[float] | np.ndarray | None,
        baseline: Sequence[float] | np.ndarray | None = None,
    ) -> float | None:
        arr = _as_array(samples)
        if arr.size == 0:
            return None
        if baseline is None:
            return _variance(arr)
        base = _as_array(baseline)
        if base.size == 0:
            return None
        return lognormal_ratio_variance(arr, base)

    def _range(
        self,
        samples: Sequence[float] | np.ndarray | None,
        baseline: Sequence[float] | np.ndarray | None,
        delta: float,
    ) -> MetricRange:
        arr = _as_array(samples)
        if arr.size == 0:
            return EMPTY_RANGE
        lower = self.mean_percentile - delta
        upper = self.mean_percentile + delta
        value_min = _percentile(arr, lower)
        value_max = _percentile(arr, upper)
        if baseline is None:
            return MetricRange(value_min, value_max)

        base = _as_array(baseline)
        if base.size == 0:
            return EMPTY_RANGE
        base_min = _percentile(base, lower)
        base_max = _percentile(base, upper)
        if base_min == 0 or base_max == 0:
            return EMPTY_RANGE
        ratio_min = value_min / base_min
        ratio_max = value_max / base_max
        if ratio_min > ratio_max:
            ratio_min = ratio_max
        return MetricRange(ratio_min, ratio_max)


P50 = PercentileCalculator(50.0, 5.0, 15.0)
P85 = PercentileCalculator(85.0, 0.0, 10.0)
