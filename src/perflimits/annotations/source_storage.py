"""Inline limits: reading decorator metadata and patching decorator lines in source files."""

from __future__ import annotations

import ast
import logging
import math
import re
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

from ..competition.messages import MessageSeverity
from ..competition.state import CompetitionAnalysis
from ..competition.types import CompetitionMetricValue, MetricInfo
from ..core.exceptions import AnnotationFormatError, ChecksumMismatchError
from ..metrics.formatting import format_value
from ..metrics.ranges import IGNORED, MetricRange, is_ignored_value
from ..metrics.units import EMPTY_UNIT, MetricUnit
from .checksum import bytes_checksum, try_file_checksum
from .context import AnnotationDocument, ContentKind, atomic_write_bytes
from .decorators import DIRECTIVE_PARAMETERS, BenchmarkInfo, LimitAnnotation
from .locator import SourceLocation

logger = logging.getLogger(__name__)

IGNORED_LITERAL = "IGNORED"
UNBOUNDED_LITERAL = "None"

BENCHMARK_DECORATORS = ("competition_benchmark", "competition_baseline")

# Only the line breaks the Python tokenizer counts, so indices match ``ast`` line numbers.
_LINE = re.compile(r"[^\r\n]*(?:\r\n|\r|\n)|[^\r\n]+")

_FUNCTION_NODES = (ast.FunctionDef, ast.AsyncFunctionDef)


def split_source_lines(text: str) -> list[str]:
    return _LINE.findall(text)


def _split_line(line: str) -> tuple[str, str]:
    body = line.rstrip("\r\n")
    return body, line[len(body) :]


def split_arguments(text: str) -> list[str]:
    """Split a call's argument text on top-level commas, honouring quotes and brackets."""
    parts: list[str] = []
    current: list[str] = []
    quote: str | None = None
    depth = 0
    for char in text:
        if quote:
            current.append(char)
            if char == quote:
                quote = None
            continue
        if char in "'\"":
            quote = char
        elif char in "([{":
            depth += 1
        elif char in ")]}":
            depth -= 1
        elif char == "," and depth == 0:
            parts.append("".join(current).strip())
            current = []
            continue
        current.append(char)
    tail = "".join(current).strip()
    if tail:
        parts.append(tail)
    return [part for part in parts if part]


def render_bound(value: float, unit: MetricUnit, ignored_literal: str = IGNORED_LITERAL) -> str:
    if is_ignored_value(value):
        return ignored_literal
    if math.isinf(value):
        return UNBOUNDED_LITERAL
    return format_value(value, unit)


def display_unit_for(value: CompetitionMetricValue) -> MetricUnit:
    if not value.metric.has_units:
        return EMPTY_UNIT
    if not value.display_unit.is_empty:
        return value.display_unit
    return value.metric.units.unit_for_range(value.values_range)


def render_directive_arguments(
    value: CompetitionMetricValue,
    existing: str = "",
    *,
    ignored_literal: str = IGNORED_LITERAL,
) -> str:
    """Render ``min, max[, unit="..."]`` keeping foreign keyword arguments of ``existing``."""
    metric = value.metric
    own = set(DIRECTIVE_PARAMETERS[metric.directive])
    arguments: list[str] = []
    if not value.values_range.is_empty:
        unit = display_unit_for(value)
        arguments.append(render_bound(value.values_range.min, unit, ignored_literal))
        arguments.append(render_bound(value.values_range.max, unit, ignored_literal))
        if not unit.is_empty:
            arguments.append(f'unit="{unit.display_name}"')
    for argument in split_arguments(existing):
        name, sep, _ = argument.partition("=")
        if argument.startswith("**") or (sep and name.strip() not in own):
            arguments.append(argument)
    return ", ".join(arguments)


def _resolves_to_ignored(namespace: Mapping[str, Any], dotted: str) -> bool:
    head, *rest = dotted.split(".")
    value = namespace.get(head)
    for attribute in rest:
        value = getattr(value, attribute, None)
    return isinstance(value, float) and is_ignored_value(value)


def ignored_literal_for(benchmark: BenchmarkInfo, qualifier: str = "") -> str:
    """Spell an ignored bound so that it resolves in the benchmark's own module.

    ``IGNORED`` is used when the module imports it, ``<qualifier>IGNORED`` when the
    decorators are reached through a qualified import, and the plain sentinel number
    otherwise.
    """
    namespace = getattr(benchmark.func, "__globals__", {})
    for candidate in (IGNORED_LITERAL, f"{qualifier}{IGNORED_LITERAL}"):
        if _resolves_to_ignored(namespace, candidate):
            return candidate
    return repr(IGNORED)


def _resolve_unit(
    metric: MetricInfo,
    unit_name: str | None,
    analysis: CompetitionAnalysis,
    target: object,
) -> MetricUnit | None:
    if not metric.has_units:
        if unit_name:
            analysis.write_message(
                MessageSeverity.WARNING,
                f"Metric {metric.metric_id} does not use units, unit {unit_name!r} ignored.",
                target=target,
            )
        return EMPTY_UNIT
    if not unit_name:
        analysis.write_message(
            MessageSeverity.WARNING,
            f"Metric {metric.metric_id} requires a unit; target skipped.",
            target=target,
        )
        return None
    unit = metric.units.find(unit_name)
    if unit is None:
        analysis.write_message(
            MessageSeverity.WARNING,
            f"Unknown unit {unit_name!r} for metric {metric.metric_id}; target skipped.",
            target=target,
        )
    return unit


def _scale(value: float | None, unit: MetricUnit) -> float | None:
    if value is None or is_ignored_value(value):
        return value
    return value * unit.scale_coefficient


def metric_value_from_bounds(
    metric: MetricInfo,
    min_value: float | None,
    max_value: float | None,
    unit_name: str | None,
    analysis: CompetitionAnalysis,
    target: object,
) -> CompetitionMetricValue | None:
    """Build a metric value from displayed bounds; ``None`` when the unit is unusable."""
    unit = _resolve_unit(metric, unit_name, analysis, target)
    if unit is None:
        return None
    values = MetricRange.create(_scale(min_value, unit), _scale(max_value, unit))
    return CompetitionMetricValue(metric, values, unit)


def read_inline_limits(
    benchmark: BenchmarkInfo, metric: MetricInfo, analysis: CompetitionAnalysis
) -> CompetitionMetricValue | None:
    """Read the limit for ``metric`` from decorator metadata.

    Returns an empty value when no directive is present and ``None`` when the target
    has to be skipped.
    """
    annotations: list[LimitAnnotation] = [
        a for a in benchmark.limits if a.directive == metric.directive
    ]
    empty = CompetitionMetricValue(metric)
    if not annotations:
        return empty
    if len(annotations) > 1:
        analysis.write_message(
            MessageSeverity.WARNING,
            f"Multiple @{metric.directive} annotations, the first one is used.",
            target=benchmark.key,
        )
    annotation = annotations[0]
    if benchmark.is_baseline and metric.is_relative:
        analysis.write_message(
            MessageSeverity.WARNING,
            f"@{metric.directive} is not applicable to the baseline and is ignored.",
            target=benchmark.key,
        )
        return empty
    if annotation.is_empty:
        analysis.write_message(
            MessageSeverity.INFORMATIONAL,
            f"@{metric.directive} has no values and is treated as empty.",
            target=benchmark.key,
        )
        return empty
    return metric_value_from_bounds(
        metric,
        annotation.min_value,
        annotation.max_value,
        annotation.unit,
        analysis,
        benchmark.key,
    )


class SourceDocument(AnnotationDocument):
    """Source file held as a list of lines with their original line endings.

    ``loaded_checksum`` is the checksum of the file as first read and never changes;
    ``checksum`` tracks what is expected on disk after this document's own writes.
    Line numbers passed to :meth:`current_index` always refer to the file as loaded.
    """

    kind = ContentKind.LINES

    def __init__(self, path: Path, lines: Sequence[str], checksum: str):
        super().__init__(str(path))
        self.path = path
        self.loaded_checksum = checksum
        self.checksum = checksum
        self._lines = list(lines)
        self._original_index: list[int | None] = list(range(len(self._lines)))
        self._mark_parsed()

    @classmethod
    def load(cls, path: str | Path) -> SourceDocument:
        path = Path(path)
        data = path.read_bytes()
        return cls(path, split_source_lines(data.decode("utf-8")), bytes_checksum(data))

    @property
    def lines(self) -> tuple[str, ...]:
        self._assert_in_lock()
        return tuple(self._lines)

    def current_index(self, line_number: int) -> int | None:
        """Map a 1-based line number of the file as loaded to the current 0-based index."""
        self._assert_in_lock()
        try:
            return self._original_index.index(line_number - 1)
        except ValueError:
            return None

    def replace_line(self, index: int, text: str) -> None:
        self._assert_in_lock()
        if self._lines[index] != text:
            self._lines[index] = text
            self.mark_dirty()

    def insert_line(self, index: int, text: str) -> None:
        self._assert_in_lock()
        self._lines.insert(index, text)
        self._original_index.insert(index, None)
        self.mark_dirty()

    def replace_span(self, start: tuple[int, int], end: tuple[int, int], text: str) -> None:
        """Replace the text between two ``(index, column)`` positions with ``text``.

        A span covering several lines collapses into the first of them.
        """
        self._assert_in_lock()
        (first, first_column), (last, last_column) = start, end
        merged = self._lines[first][:first_column] + text + self._lines[last][last_column:]
        if self._lines[first : last + 1] == [merged]:
            return
        self._lines[first : last + 1] = [merged]
        self._original_index[first : last + 1] = [self._original_index[first]]
        self.mark_dirty()

    def _write(self) -> None:
        actual = try_file_checksum(self.path)
        if actual != self.checksum:
            raise ChecksumMismatchError(str(self.path), self.checksum, actual)
        data = "".join(self._lines).encode("utf-8")
        atomic_write_bytes(self.path, data)
        self.checksum = bytes_checksum(data)

    def dispose(self) -> None:
        super().dispose()
        self._lines = []
        self._original_index = []


def _dotted_name(node: ast.expr) -> str | None:
    parts: list[str] = []
    while isinstance(node, ast.Attribute):
        parts.append(node.attr)
        node = node.value
    if not isinstance(node, ast.Name):
        return None
    parts.append(node.id)
    return ".".join(reversed(parts))


def _decorator_name(decorator: ast.expr) -> tuple[str, str] | None:
    """``(qualifier, name)`` of a decorator, e.g. ``("pl.", "competition_limit")``."""
    dotted = _dotted_name(decorator.func if isinstance(decorator, ast.Call) else decorator)
    if dotted is None:
        return None
    qualifier, _, name = dotted.rpartition(".")
    return (f"{qualifier}." if qualifier else ""), name


def _first_line(node: ast.FunctionDef | ast.AsyncFunctionDef) -> int:
    return min([node.lineno, *(decorator.lineno for decorator in node.decorator_list)])


def _parse_source(document: SourceDocument) -> ast.Module:
    try:
        return ast.parse("".join(document.lines), filename=str(document.path))
    except (SyntaxError, ValueError) as exc:
        raise AnnotationFormatError(
            f"Cannot parse source file '{document.path}': {exc}"
        ) from exc


def _find_function(
    tree: ast.Module, name: str, first_line: int
) -> ast.FunctionDef | ast.AsyncFunctionDef | None:
    found = [
        node
        for node in ast.walk(tree)
        if isinstance(node, _FUNCTION_NODES)
        and node.name == name
        and _first_line(node) >= first_line
    ]
    return min(found, key=_first_line, default=None)


def _char_column(line: str, byte_offset: int) -> int:
    return len(line.encode("utf-8")[:byte_offset].decode("utf-8"))


def _rewrite_directive(
    document: SourceDocument,
    decorator: ast.expr,
    value: CompetitionMetricValue,
    ignored_literal: str,
) -> None:
    directive = value.metric.directive
    if not isinstance(decorator, ast.Call) or decorator.end_lineno is None:
        raise AnnotationFormatError(
            f"@{directive} in '{document.path}' line {decorator.lineno} is not a call "
            "and cannot be rewritten."
        )
    lines = document.lines
    text = "".join(lines)
    callee = ast.get_source_segment(text, decorator.func) or directive
    keywords = [ast.get_source_segment(text, keyword) or "" for keyword in decorator.keywords]
    arguments = render_directive_arguments(
        value, ", ".join(keywords), ignored_literal=ignored_literal
    )
    first, last = decorator.lineno - 1, decorator.end_lineno - 1
    document.replace_span(
        (first, _char_column(lines[first], decorator.col_offset)),
        (last, _char_column(lines[last], decorator.end_col_offset or 0)),
        f"{callee}({arguments})",
    )


def patch_source_target(
    document: SourceDocument,
    location: SourceLocation,
    benchmark: BenchmarkInfo,
    values: Sequence[CompetitionMetricValue],
) -> bool:
    """Rewrite (or insert) the limit directives of one benchmark in ``document``.

    The whole directive is replaced, however many lines it spans. Returns ``False``
    when the function definition cannot be found and raises
    :class:`AnnotationFormatError` when the file does not parse.
    """
    start = document.current_index(location.first_line)
    if start is None:
        return False

    for value in values:
        node = _find_function(_parse_source(document), benchmark.key.name, start + 1)
        if node is None:
            return False
        names = [_decorator_name(decorator) for decorator in node.decorator_list]
        qualifier = next(
            (name[0] for name in names if name and name[1] in BENCHMARK_DECORATORS), ""
        )
        ignored_literal = ignored_literal_for(benchmark, qualifier)
        directive = value.metric.directive

        existing = next(
            (
                decorator
                for decorator, name in zip(node.decorator_list, names)
                if name and name[1] == directive
            ),
            None,
        )
        if existing is not None:
            _rewrite_directive(document, existing, value, ignored_literal)
        else:
            def_index = node.lineno - 1
            body, eol = _split_line(document.lines[def_index])
            eol = eol or "\n"
            indent = body[: len(body) - len(body.lstrip())]
            arguments = render_directive_arguments(value, ignored_literal=ignored_literal)
            document.insert_line(
                def_index, f"{indent}@{qualifier}{directive}({arguments}){eol}"
            )
        logger.debug("Patched @%s for %s", directive, benchmark.key)
    return True
