"""Tests for inline limit reading and decorator-line patching."""

from __future__ import annotations

import importlib.util
import sys
from pathlib import Path
from types import ModuleType

import pytest

from perflimits.annotations.context import AnnotationContext
from perflimits.annotations.decorators import LIMITS_ATTR, BenchmarkInfo, benchmark_info
from perflimits.annotations.locator import InspectSourceLocator, SourceLocation
from perflimits.annotations.source_storage import (
    SourceDocument,
    patch_source_target,
    render_directive_arguments,
    split_arguments,
    split_source_lines,
)
from perflimits.competition.types import RELATIVE_TIME, TIME, CompetitionMetricValue, TargetKey
from perflimits.core.exceptions import AnnotationFormatError
from perflimits.metrics.ranges import IGNORED, MetricRange, is_ignored_value
from perflimits.metrics.units import TIME_SCALE, TimeUnit

SOURCE = """\
import perflimits as pl


class ParseSuite:
    @pl.competition_benchmark
    @pl.competition_limit(min_ratio=1.0, max_ratio=1.1)
    def bench_json(self):
        pass

    @pl.competition_benchmark
    def bench_csv(self):
        pass
"""


def _import(path: Path, name: str, monkeypatch: pytest.MonkeyPatch) -> ModuleType:
    monkeypatch.setattr(sys, "dont_write_bytecode", True)
    spec = importlib.util.spec_from_file_location(name, path)
    assert spec is not None and spec.loader is not None
    module = importlib.util.module_from_spec(spec)
    monkeypatch.setitem(sys.modules, name, module)
    spec.loader.exec_module(module)
    return module


def _patch(path: Path, func, owner, values) -> bool:
    benchmark = benchmark_info(func, owner=owner)
    location = InspectSourceLocator().locate(benchmark)
    assert location is not None

    def run(ctx: AnnotationContext) -> bool:
        document = ctx.get_or_load(str(path), SourceDocument, lambda: SourceDocument.load(path))
        patched = patch_source_target(document, location, benchmark, values)
        ctx.save()
        return patched

    return AnnotationContext().run_in_context(run)


def test_split_arguments_respects_quotes() -> None:
    assert split_arguments('1.0, 2.0, unit="a,b"') == ["1.0", "2.0", 'unit="a,b"']
    assert split_arguments("") == []


def test_split_arguments_respects_brackets() -> None:
    assert split_arguments('note=f(1, 2), tags=["a", "b"]') == ["note=f(1, 2)", 'tags=["a", "b"]']


def test_source_lines_split_only_on_python_line_breaks() -> None:
    assert split_source_lines("a\r\nb\x0cc\rd\n") == ["a\r\n", "b\x0cc\r", "d\n"]
    assert split_source_lines("tail") == ["tail"]


def test_render_directive_arguments_keeps_foreign_keywords() -> None:
    value = CompetitionMetricValue(RELATIVE_TIME, MetricRange(0.95, 1.2))
    assert render_directive_arguments(value, '1.0, 1.1, note="tuned"') == (
        '0.95, 1.20, note="tuned"'
    )


def test_render_directive_arguments_for_sentinels_and_units() -> None:
    us = TIME_SCALE[TimeUnit.MICROSECOND]
    value = CompetitionMetricValue(TIME, MetricRange.create(IGNORED, 2_500.0), us)
    assert render_directive_arguments(value, "min_time=1") == 'IGNORED, 2.50, unit="us"'
    unbounded = CompetitionMetricValue(RELATIVE_TIME, MetricRange.create(1.5, None))
    assert render_directive_arguments(unbounded) == "1.50, None"


def test_existing_directive_is_rewritten_and_reimports(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    path = tmp_path / "bench_suite.py"
    path.write_text(SOURCE, encoding="utf-8")
    module = _import(path, "bench_suite", monkeypatch)

    value = CompetitionMetricValue(RELATIVE_TIME, MetricRange(0.95, 1.20))
    assert _patch(path, module.ParseSuite.bench_json, module.ParseSuite, [value])

    text = path.read_text(encoding="utf-8")
    assert "    @pl.competition_limit(0.95, 1.20)\n" in text

    monkeypatch.delitem(sys.modules, "bench_suite")
    reloaded = _import(path, "bench_suite", monkeypatch)
    (annotation,) = getattr(reloaded.ParseSuite.bench_json, LIMITS_ATTR)
    assert annotation.min_value == pytest.approx(0.95)
    assert annotation.max_value == pytest.approx(1.20)


def test_missing_directive_is_inserted_above_def(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    path = tmp_path / "bench_insert.py"
    path.write_text(SOURCE, encoding="utf-8")
    module = _import(path, "bench_insert", monkeypatch)

    value = CompetitionMetricValue(RELATIVE_TIME, MetricRange(2.0, 2.5))
    assert _patch(path, module.ParseSuite.bench_csv, module.ParseSuite, [value])

    lines = path.read_text(encoding="utf-8").splitlines()
    index = lines.index("    def bench_csv(self):")
    assert lines[index - 1] == "    @pl.competition_limit(2.00, 2.50)"
    assert lines[index - 2] == "    @pl.competition_benchmark"


def test_windows_line_endings_are_preserved(tmp_path: Path) -> None:
    path = tmp_path / "crlf.py"
    path.write_bytes(b"a = 1\r\nb = 2\r\n")

    def run(ctx: AnnotationContext) -> None:
        document = ctx.get_or_load(str(path), SourceDocument, lambda: SourceDocument.load(path))
        document.insert_line(1, "# note\r\n")
        ctx.save()

    AnnotationContext().run_in_context(run)
    assert path.read_bytes() == b"a = 1\r\n# note\r\nb = 2\r\n"


def test_line_numbers_refer_to_loaded_file(tmp_path: Path) -> None:
    path = tmp_path / "lines.py"
    path.write_text("one\ntwo\nthree\n", encoding="utf-8")

    def run(ctx: AnnotationContext) -> tuple[int | None, int | None]:
        document = ctx.get_or_load(str(path), SourceDocument, lambda: SourceDocument.load(path))
        document.insert_line(0, "zero\n")
        return document.current_index(1), document.current_index(3)

    assert AnnotationContext().run_in_context(run) == (1, 3)


@pytest.mark.parametrize(
    ("module_name", "header", "prefix", "written", "expected"),
    [
        ("bench_ign_qualified", "import perflimits as pl", "pl.", "pl.IGNORED", "pl.IGNORED"),
        (
            "bench_ign_imported",
            "from perflimits import IGNORED, competition_benchmark, competition_limit",
            "",
            "IGNORED",
            "IGNORED",
        ),
        (
            "bench_ign_number",
            "from perflimits import competition_benchmark, competition_limit",
            "",
            "-1",
            "-1.0",
        ),
    ],
)
def test_ignored_bound_resolves_in_rewritten_module(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    module_name: str,
    header: str,
    prefix: str,
    written: str,
    expected: str,
) -> None:
    path = tmp_path / f"{module_name}.py"
    path.write_text(
        f"{header}\n\n\n"
        f"@{prefix}competition_benchmark\n"
        f"@{prefix}competition_limit({written}, 1.5)\n"
        "def bench_floor():\n"
        "    pass\n",
        encoding="utf-8",
    )
    module = _import(path, module_name, monkeypatch)

    value = CompetitionMetricValue(RELATIVE_TIME, MetricRange.create(IGNORED, 2.0))
    assert _patch(path, module.bench_floor, None, [value])
    assert f"@{prefix}competition_limit({expected}, 2.00)\n" in path.read_text(encoding="utf-8")

    monkeypatch.delitem(sys.modules, module_name)
    reloaded = _import(path, module_name, monkeypatch)
    (annotation,) = getattr(reloaded.bench_floor, LIMITS_ATTR)
    assert is_ignored_value(annotation.min_value)
    assert annotation.max_value == pytest.approx(2.0)


SPLIT_SOURCE = """\
from perflimits import competition_benchmark, competition_limit


@competition_benchmark
@competition_limit(
    1.0,
    1.5,
)  # tuned by hand
def bench_split():
    pass


@competition_benchmark
@competition_limit(float("1.0"), max_ratio=float("1.5"))
def bench_nested():
    pass
"""


def test_directive_spanning_lines_is_replaced_whole(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    path = tmp_path / "bench_span.py"
    path.write_text(SPLIT_SOURCE, encoding="utf-8")
    module = _import(path, "bench_span", monkeypatch)

    value = CompetitionMetricValue(RELATIVE_TIME, MetricRange(0.95, 1.60))
    assert _patch(path, module.bench_split, None, [value])

    lines = path.read_text(encoding="utf-8").splitlines()
    index = lines.index("def bench_split():")
    assert lines[index - 1] == "@competition_limit(0.95, 1.60)  # tuned by hand"
    assert lines[index - 2] == "@competition_benchmark"

    monkeypatch.delitem(sys.modules, "bench_span")
    reloaded = _import(path, "bench_span", monkeypatch)
    (annotation,) = getattr(reloaded.bench_split, LIMITS_ATTR)
    assert (annotation.min_value, annotation.max_value) == pytest.approx((0.95, 1.60))


def test_directive_with_nested_calls_is_replaced_whole(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    path = tmp_path / "bench_nested_calls.py"
    path.write_text(SPLIT_SOURCE, encoding="utf-8")
    module = _import(path, "bench_nested_calls", monkeypatch)

    value = CompetitionMetricValue(RELATIVE_TIME, MetricRange(0.95, 1.60))
    assert _patch(path, module.bench_nested, None, [value])

    text = path.read_text(encoding="utf-8")
    assert text.count("@competition_limit(") == 2
    assert "@competition_limit(0.95, 1.60)\ndef bench_nested():\n" in text
    assert "@competition_limit(\n    1.0,\n    1.5,\n)  # tuned by hand\n" in text


def test_unparsable_source_is_not_patched(tmp_path: Path) -> None:
    path = tmp_path / "bench_broken.py"
    text = "@competition_benchmark\ndef bench_broken(:\n    pass\n"
    path.write_text(text, encoding="utf-8")
    benchmark = BenchmarkInfo(TargetKey("bench_broken", "bench_broken"))
    value = CompetitionMetricValue(RELATIVE_TIME, MetricRange(1.0, 2.0))

    def run(ctx: AnnotationContext) -> bool:
        document = ctx.get_or_load(str(path), SourceDocument, lambda: SourceDocument.load(path))
        with pytest.raises(AnnotationFormatError, match="Cannot parse source file"):
            patch_source_target(document, SourceLocation(path, 1), benchmark, [value])
        return document.dirty

    assert AnnotationContext().run_in_context(run) is False
    assert path.read_text(encoding="utf-8") == text
