"""Tests for benchmark and limit decorators."""

from __future__ import annotations

import sys
import types

import pytest

from perflimits.annotations.checksum import bytes_checksum, file_checksum, try_file_checksum
from perflimits.annotations.decorators import (
    BENCHMARK_ATTR,
    benchmark_info,
    collect_benchmarks,
    competition_baseline,
    competition_benchmark,
    competition_limit,
    expected_allocations,
    expected_time,
    xml_annotations,
)
from perflimits.competition.types import TargetKey


@competition_baseline
def bench_base():
    pass


@competition_benchmark
@competition_limit(1.8, 2.2)
@expected_time(1.5, 2.0, unit="us")
def bench_fast():
    pass


@xml_annotations(resource_path="limits.xml")
class XmlSuite:
    @competition_benchmark
    def bench_method(self):
        pass

    @staticmethod
    @competition_benchmark
    def bench_static():
        pass

    def helper(self):
        pass


def test_decorators_return_function_unchanged() -> None:
    assert bench_fast.__name__ == "bench_fast"
    assert getattr(bench_fast, BENCHMARK_ATTR).is_baseline is False
    assert getattr(bench_base, BENCHMARK_ATTR).is_baseline is True


def test_limits_keep_source_order() -> None:
    info = benchmark_info(bench_fast)
    assert [a.directive for a in info.limits] == ["competition_limit", "expected_time"]
    assert info.limits[1].unit == "us"
    assert info.key == TargetKey(__name__, "bench_fast")


def test_source_checksum_is_recorded_at_import() -> None:
    marker = getattr(bench_fast, BENCHMARK_ATTR)
    assert marker.source_path is not None
    assert marker.source_checksum == file_checksum(marker.source_path)


def test_empty_and_unbounded_directives() -> None:
    @competition_benchmark
    @competition_limit()
    @expected_allocations(None, 4096)
    def bench():
        pass

    empty, half_open = benchmark_info(bench).limits
    assert empty.is_empty
    assert not half_open.is_empty
    assert half_open.min_value is None
    assert half_open.max_value == 4096.0


def test_benchmark_info_requires_marker() -> None:
    with pytest.raises(ValueError, match="not decorated"):
        benchmark_info(XmlSuite.helper)


def test_collect_benchmarks_from_module_and_classes() -> None:
    module = sys.modules[__name__]
    benchmarks = collect_benchmarks(module, XmlSuite)
    keys = [str(b.key) for b in benchmarks]
    assert keys == [
        f"{__name__}:bench_base",
        f"{__name__}:bench_fast",
        f"{__name__}:XmlSuite.bench_method",
        f"{__name__}:XmlSuite.bench_static",
    ]
    by_name = {b.key.name: b for b in benchmarks}
    assert by_name["bench_base"].is_baseline
    assert not by_name["bench_fast"].use_xml
    assert by_name["bench_method"].use_xml
    assert by_name["bench_static"].xml_resource == "limits.xml"


def test_collect_benchmarks_skips_foreign_classes() -> None:
    module = types.ModuleType("empty_bench_module")
    module.XmlSuite = XmlSuite
    assert collect_benchmarks(module) == []


def test_checksums(tmp_path) -> None:
    path = tmp_path / "data.bin"
    path.write_bytes(b"abc")
    assert file_checksum(path) == bytes_checksum(b"abc")
    assert try_file_checksum(tmp_path / "missing") is None
    assert len(bytes_checksum(b"")) == 64
