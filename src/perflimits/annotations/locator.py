"""Source location lookup for benchmark functions."""

from __future__ import annotations

import inspect
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from ..competition.types import TargetKey
from .decorators import BENCHMARK_ATTR, BenchmarkInfo, BenchmarkMarker

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SourceLocation:
    """Where a benchmark lives and the checksum its file had when it was imported."""

    path: Path
    first_line: int
    checksum: str | None = None


class SourceLocator(Protocol):
    def locate(self, benchmark: BenchmarkInfo) -> SourceLocation | None: ...


class InspectSourceLocator:
    """Resolve locations through ``inspect`` and the code object of the function."""

    def locate(self, benchmark: BenchmarkInfo) -> SourceLocation | None:
        func = benchmark.func
        if func is None:
            return None
        func = inspect.unwrap(func)
        marker: BenchmarkMarker | None = getattr(func, BENCHMARK_ATTR, None)
        try:
            source_path = inspect.getsourcefile(func)
        except TypeError:
            source_path = None
        if not source_path:
            logger.debug("No source file for %s", benchmark.key)
            return None
        code = getattr(func, "__code__", None)
        if code is None:
            return None
        return SourceLocation(
            path=Path(source_path),
            first_line=code.co_firstlineno,
            checksum=marker.source_checksum if marker else None,
        )


class StaticSourceLocator:
    """Fixed key-to-location table."""

    def __init__(self, locations: Mapping[TargetKey, SourceLocation] | None = None):
        self._locations = dict(locations or {})

    def add(self, key: TargetKey, location: SourceLocation) -> None:
        self._locations[key] = location

    def locate(self, benchmark: BenchmarkInfo) -> SourceLocation | None:
        return self._locations.get(benchmark.key)
