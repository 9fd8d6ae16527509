"""Tests for MetricRange algebra."""

from __future__ import annotations

import math

import pytest

from perflimits.metrics.ranges import EMPTY_RANGE, IGNORED, MetricRange, is_ignored_value


def test_nan_on_either_side_makes_range_empty() -> None:
    assert MetricRange(math.nan, 1.0).is_empty
    assert MetricRange(1.0, math.nan).is_empty
    assert MetricRange() == EMPTY_RANGE


def test_negative_bound_is_normalized_to_ignored() -> None:
    values = MetricRange(-5.0, 2.0)
    assert values.min == IGNORED
    assert values.min_is_ignored
    assert not values.max_is_ignored


def test_min_above_max_is_rejected() -> None:
    with pytest.raises(ValueError, match="must not exceed"):
        MetricRange(3.0, 2.0)


def test_ignored_bounds_skip_ordering_check() -> None:
    values = MetricRange(5.0, -1.0)
    assert values.max_is_ignored


def test_create_treats_missing_side_as_unbounded() -> None:
    values = MetricRange.create(min=1.0)
    assert values.min == 1.0
    assert values.max_is_infinite
    assert MetricRange.create(max=2.0).min_is_infinite


def test_is_ignored_value() -> None:
    assert is_ignored_value(-1.0)
    assert not is_ignored_value(0.0)
    assert not is_ignored_value(-math.inf)


def test_contains_regular_ranges() -> None:
    outer = MetricRange(1.0, 3.0)
    assert outer.contains(MetricRange(1.5, 2.5))
    assert outer.contains(outer)
    assert not outer.contains(MetricRange(0.5, 2.0))
    assert not outer.contains(MetricRange(2.0, 3.5))


def test_empty_range_is_contained_only_by_empty_range() -> None:
    assert EMPTY_RANGE.contains(EMPTY_RANGE)
    assert not MetricRange(1.0, 2.0).contains(EMPTY_RANGE)
    assert not EMPTY_RANGE.contains(MetricRange(1.0, 2.0))


def test_ignored_outer_side_always_passes() -> None:
    outer = MetricRange(IGNORED, 2.0)
    assert outer.contains(MetricRange(0.001, 1.0))
    assert not outer.contains(MetricRange(0.5, 2.5))


def test_ignored_inner_side_fails_against_regular_outer_side() -> None:
    assert not MetricRange(1.0, 2.0).contains(MetricRange(IGNORED, 1.5))


def test_union_returns_self_when_it_contains_other() -> None:
    outer = MetricRange(1.0, 3.0)
    assert outer.union(MetricRange(1.5, 2.0)) is outer


def test_union_widens_to_cover_both() -> None:
    merged = MetricRange(1.0, 1.5).union(MetricRange(2.0, 2.5))
    assert merged == MetricRange(1.0, 2.5)


def test_union_with_empty_keeps_other_side() -> None:
    values = MetricRange(1.0, 2.0)
    assert EMPTY_RANGE.union(values) == values
    assert values.union(EMPTY_RANGE) == values


def test_union_keeps_ignored_sides() -> None:
    merged = MetricRange(IGNORED, 1.0).union(MetricRange(0.5, 2.0))
    assert merged.min_is_ignored
    assert merged.max == 2.0


def test_union_is_idempotent_and_commutative() -> None:
    a = MetricRange(1.0, 2.0)
    b = MetricRange(1.5, 4.0)
    assert a.union(a) == a
    assert a.union(b) == b.union(a)
    assert a.union(b).union(b) == a.union(b)


def test_union_contains_both_operands() -> None:
    a = MetricRange(0.2, 0.9)
    b = MetricRange.create(0.5, None)
    merged = a.union(b)
    assert merged.contains(a)
    assert merged.contains(b)


def test_str_rendering() -> None:
    assert str(EMPTY_RANGE) == "[empty]"
    assert str(MetricRange(IGNORED, 2.5)) == "[ignored..2.5]"
    assert str(MetricRange.create(1.0)) == "[1..+inf]"


def test_empty_ranges_hash_equal() -> None:
    assert hash(MetricRange(math.nan, 1.0)) == hash(EMPTY_RANGE)
    assert len({MetricRange(1.0, 2.0), MetricRange(1.0, 2.0)}) == 1
