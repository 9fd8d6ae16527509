"""Shared utilities for perflimits CLI commands."""

from __future__ import annotations

import importlib.util
import sys
from collections.abc import Sequence
from pathlib import Path
from types import ModuleType

from perflimits.annotations.decorators import BenchmarkInfo, collect_benchmarks


def _import_benchmark_module(path: Path) -> ModuleType:
    """Import a benchmark file as a top-level module named after its stem.

    Target keys of the benchmarks in it are ``<stem>:<qualname>``.
    """
    path = path.resolve()
    if not path.is_file():
        raise FileNotFoundError(f"Benchmark file not found: {path}")
    module_name = path.stem
    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise ValueError(f"Cannot import benchmark file: {path}")
    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    except BaseException:
        sys.modules.pop(module_name, None)
        raise
    return module


def _load_benchmarks(paths: Sequence[Path]) -> list[BenchmarkInfo]:
    modules = [_import_benchmark_module(path) for path in paths]
    return collect_benchmarks(*modules)
