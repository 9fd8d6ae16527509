"""Decorators that declare benchmarks and their inline limits.

Decorators only attach metadata attributes and return the function unchanged, so
they can be stacked in any order::

    @competition_benchmark
    @competition_limit(1.80, 2.20)
    def bench_parse():
        ...
"""

from __future__ import annotations

import inspect
import logging
import types
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from ..competition.types import TargetKey
from .checksum import try_file_checksum

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])
C = TypeVar("C", bound=type)

BENCHMARK_ATTR = "__perflimits_benchmark__"
LIMITS_ATTR = "__perflimits_limits__"
XML_ATTR = "__perflimits_xml__"


class _Unset:
    def __repr__(self) -> str:
        return "<unset>"


UNSET: Any = _Unset()

DIRECTIVE_PARAMETERS: dict[str, tuple[str, ...]] = {
    "competition_limit": ("min_ratio", "max_ratio"),
    "expected_time": ("min_time", "max_time", "unit"),
    "expected_allocations": ("min_bytes", "max_bytes", "unit"),
}


@dataclass(frozen=True)
class LimitAnnotation:
    """Arguments of one limit directive, as written in the source."""

    directive: str
    min_value: float | None = None
    max_value: float | None = None
    unit: str | None = None
    is_empty: bool = False


@dataclass(frozen=True)
class BenchmarkMarker:
    is_baseline: bool
    source_path: str | None
    source_checksum: str | None


@dataclass(frozen=True)
class XmlAnnotationMarker:
    resource_path: str | None = None


@dataclass(frozen=True)
class BenchmarkInfo:
    """Everything known about a declared benchmark before it is measured."""

    key: TargetKey
    func: Callable[..., Any] | None = None
    is_baseline: bool = False
    limits: tuple[LimitAnnotation, ...] = ()
    use_xml: bool = False
    xml_resource: str | None = None


def _source_marker(func: Callable[..., Any], baseline: bool) -> BenchmarkMarker:
    try:
        source_path = inspect.getsourcefile(func)
    except TypeError:
        source_path = None
    checksum = try_file_checksum(source_path) if source_path else None
    if checksum is None:
        logger.debug("No source checksum recorded for %s", getattr(func, "__qualname__", func))
    return BenchmarkMarker(is_baseline=baseline, source_path=source_path, source_checksum=checksum)


def competition_benchmark(func: F | None = None, *, baseline: bool = False) -> Any:
    """Mark a function as a competition target.

    The source file checksum is recorded now, at import time, and later used to refuse
    rewriting a file that changed after it was measured.
    """

    def decorate(target: F) -> F:
        setattr(target, BENCHMARK_ATTR, _source_marker(target, baseline))
        return target

    if func is not None:
        return decorate(func)
    return decorate


def competition_baseline(func: F) -> F:
    return competition_benchmark(func, baseline=True)


def _limit_decorator(
    directive: str, min_value: Any, max_value: Any, unit: str | None
) -> Callable[[F], F]:
    if min_value is UNSET and max_value is UNSET:
        annotation = LimitAnnotation(directive, unit=unit, is_empty=True)
    else:
        annotation = LimitAnnotation(
            directive,
            min_value=None if min_value is UNSET or min_value is None else float(min_value),
            max_value=None if max_value is UNSET or max_value is None else float(max_value),
            unit=unit,
        )

    def decorate(func: F) -> F:
        # Decorators apply bottom-up; prepend to keep source order.
        existing = getattr(func, LIMITS_ATTR, ())
        setattr(func, LIMITS_ATTR, (annotation, *existing))
        return func

    return decorate


def competition_limit(min_ratio: Any = UNSET, max_ratio: Any = UNSET) -> Callable[[F], F]:
    """Limit for the time relative to the baseline, e.g. ``@competition_limit(1.80, 2.20)``."""
    return _limit_decorator("competition_limit", min_ratio, max_ratio, None)


def expected_time(
    min_time: Any = UNSET, max_time: Any = UNSET, unit: str | None = None
) -> Callable[[F], F]:
    return _limit_decorator("expected_time", min_time, max_time, unit)


def expected_allocations(
    min_bytes: Any = UNSET, max_bytes: Any = UNSET, unit: str | None = None
) -> Callable[[F], F]:
    return _limit_decorator("expected_allocations", min_bytes, max_bytes, unit)


def xml_annotations(cls: C | None = None, *, resource_path: str | None = None) -> Any:
    """Store the limits of a class's benchmarks in an XML sidecar instead of inline."""

    def decorate(target: C) -> C:
        setattr(target, XML_ATTR, XmlAnnotationMarker(resource_path))
        return target

    if cls is not None:
        return decorate(cls)
    return decorate


def benchmark_info(func: Callable[..., Any], *, owner: type | None = None) -> BenchmarkInfo:
    marker: BenchmarkMarker | None = getattr(func, BENCHMARK_ATTR, None)
    if marker is None:
        raise ValueError(f"{func!r} is not decorated with @competition_benchmark")
    xml_marker: XmlAnnotationMarker | None = getattr(owner, XML_ATTR, None) if owner else None
    return BenchmarkInfo(
        key=TargetKey(func.__module__, func.__qualname__),
        func=func,
        is_baseline=marker.is_baseline,
        limits=tuple(getattr(func, LIMITS_ATTR, ())),
        use_xml=xml_marker is not None,
        xml_resource=xml_marker.resource_path if xml_marker else None,
    )


def _members(container: Any) -> list[tuple[Any, type | None]]:
    owner = container if isinstance(container, type) else None
    found: list[tuple[Any, type | None]] = []
    for value in vars(container).values():
        if isinstance(value, (staticmethod, classmethod)):
            value = value.__func__
        if inspect.isfunction(value) and hasattr(value, BENCHMARK_ATTR):
            found.append((value, owner))
        elif (
            isinstance(value, type)
            and isinstance(container, types.ModuleType)
            and value.__module__ == container.__name__
        ):
            found.extend(_members(value))
    return found


def collect_benchmarks(*containers: Any) -> list[BenchmarkInfo]:
    """Collect decorated benchmarks from modules and classes, in definition order."""
    benchmarks: list[BenchmarkInfo] = []
    seen: set[TargetKey] = set()
    for container in containers:
        for func, owner in _members(container):
            info = benchmark_info(func, owner=owner)
            if info.key not in seen:
                seen.add(info.key)
                benchmarks.append(info)
    return benchmarks
