"""Loading limits for benchmarks and writing adjusted limits back to their storage."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from ..competition.messages import MessageSeverity
from ..competition.state import CompetitionAnalysis
from ..competition.types import (
    CompetitionMetricValue,
    CompetitionTarget,
    MetricInfo,
    TargetKey,
)
from ..core.exceptions import AnnotationFormatError, AnnotationSaveError, ValidationError
from ..metrics.formatting import format_range
from .context import AnnotationContext, AnnotationDocument
from .decorators import BenchmarkInfo
from .locator import SourceLocation, SourceLocator
from .source_storage import SourceDocument, patch_source_target, read_inline_limits
from .xml_storage import XmlDocument, find_candidate, read_candidate_value, resolve_xml_path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Pending:
    target: CompetitionTarget
    document: AnnotationDocument


class AnnotationRewriter:
    """Reads limits from, and writes limits to, inline decorators or XML sidecars.

    Writes are staged in the :class:`AnnotationContext`; nothing touches the disk
    until every target of the pass has been patched and ``context.save()`` runs.
    """

    def __init__(self, locator: SourceLocator, metrics: Sequence[MetricInfo]):
        self.locator = locator
        self.metrics = tuple(metrics)
        self._benchmarks: dict[TargetKey, BenchmarkInfo] = {}

    def _xml_document(
        self,
        benchmark: BenchmarkInfo,
        location: SourceLocation,
        context: AnnotationContext,
    ) -> XmlDocument:
        path = resolve_xml_path(location.path, benchmark.xml_resource)
        return context.get_or_load(str(path), XmlDocument, lambda: XmlDocument.load(path))

    def load_targets(
        self,
        benchmarks: Iterable[BenchmarkInfo],
        context: AnnotationContext,
        analysis: CompetitionAnalysis,
    ) -> list[CompetitionTarget]:
        """Build one target per benchmark; targets whose limits cannot be read are skipped."""
        context.assert_in_lock()
        targets: list[CompetitionTarget] = []
        for benchmark in benchmarks:
            self._benchmarks[benchmark.key] = benchmark
            target = self._load_target(benchmark, context, analysis)
            if target is None:
                analysis.write_message(
                    MessageSeverity.WARNING,
                    "Limits could not be loaded, target skipped.",
                    target=benchmark.key,
                )
                continue
            targets.append(target)
        return targets

    def _load_target(
        self,
        benchmark: BenchmarkInfo,
        context: AnnotationContext,
        analysis: CompetitionAnalysis,
    ) -> CompetitionTarget | None:
        target = CompetitionTarget(benchmark.key, is_baseline=benchmark.is_baseline)
        if not benchmark.use_xml:
            for metric in self.metrics:
                value = read_inline_limits(benchmark, metric, analysis)
                if value is None:
                    return None
                target.add_metric_value(value)
            return target

        location = self.locator.locate(benchmark)
        if location is None:
            document: AnnotationDocument = context.get_unknown_origin_document()
            context.add_target_key(benchmark.key, document)
            analysis.write_message(
                MessageSeverity.WARNING,
                "Cannot resolve the source file of the benchmark.",
                target=benchmark.key,
            )
            return None
        xml_document = self._xml_document(benchmark, location, context)
        context.add_target_key(benchmark.key, xml_document)
        root = xml_document.root
        if root is None:
            analysis.write_message(
                MessageSeverity.WARNING,
                xml_document.error or "XML annotation is not usable.",
                target=benchmark.key,
            )
            return None
        candidate = find_candidate(root, benchmark.key)
        for metric in self.metrics:
            if candidate is None:
                value: CompetitionMetricValue | None = CompetitionMetricValue(metric)
            else:
                value = read_candidate_value(
                    candidate, metric, analysis, target=benchmark.key, origin=xml_document.origin
                )
                if value is not None and benchmark.is_baseline and metric.is_relative:
                    if not value.values_range.is_empty:
                        analysis.write_message(
                            MessageSeverity.WARNING,
                            f"{metric.xml_min_attribute}/{metric.xml_max_attribute} is not "
                            "applicable to the baseline and is ignored.",
                            target=benchmark.key,
                        )
                    value = CompetitionMetricValue(metric)
            if value is None:
                return None
            target.add_metric_value(value)
        return target

    def save_targets(
        self,
        targets: Iterable[CompetitionTarget],
        context: AnnotationContext,
        analysis: CompetitionAnalysis,
    ) -> list[CompetitionTarget]:
        """Patch every dirty target, flush the context, and return the targets that were saved.

        Targets that could not be written keep their unsaved changes.
        """
        context.assert_in_lock()
        pending: list[_Pending] = []
        for target in targets:
            if not target.has_unsaved_changes:
                continue
            document = self._patch_target(target, context, analysis)
            if document is not None:
                pending.append(_Pending(target, document))

        failed: set[str] = set()
        try:
            context.save()
        except AnnotationSaveError as exc:
            failed = set(exc.failures)
            for origin, failure in exc.failures.items():
                analysis.write_message(
                    MessageSeverity.SETUP_ERROR,
                    f"Could not save annotations to '{origin}': {failure}",
                )

        saved: list[CompetitionTarget] = []
        for item in pending:
            if item.document.origin in failed:
                continue
            item.target.mark_as_saved()
            saved.append(item.target)
        return saved

    def _patch_target(
        self,
        target: CompetitionTarget,
        context: AnnotationContext,
        analysis: CompetitionAnalysis,
    ) -> AnnotationDocument | None:
        benchmark = self._benchmarks.get(target.key)
        if benchmark is None:
            analysis.write_message(
                MessageSeverity.SETUP_ERROR,
                "No benchmark is registered for the target.",
                target=target.key,
            )
            return None
        location = self.locator.locate(benchmark)
        if location is None:
            context.add_target_key(target.key, context.get_unknown_origin_document())
            analysis.write_message(
                MessageSeverity.SETUP_ERROR,
                "Cannot resolve the source file of the benchmark, limits are not saved.",
                target=target.key,
            )
            return None

        changed = [v for v in target.metric_values.values() if v.has_unsaved_changes]
        if benchmark.use_xml:
            return self._patch_xml(target, benchmark, location, changed, context, analysis)
        return self._patch_source(target, benchmark, location, changed, context, analysis)

    def _patch_source(
        self,
        target: CompetitionTarget,
        benchmark: BenchmarkInfo,
        location: SourceLocation,
        changed: list[CompetitionMetricValue],
        context: AnnotationContext,
        analysis: CompetitionAnalysis,
    ) -> AnnotationDocument | None:
        try:
            document = context.get_or_load(
                str(location.path), SourceDocument, lambda: SourceDocument.load(location.path)
            )
        except OSError as exc:
            analysis.write_message(
                MessageSeverity.SETUP_ERROR,
                f"Cannot read source file '{location.path}': {exc}",
                target=target.key,
            )
            return None
        if location.checksum is None or location.checksum != document.loaded_checksum:
            analysis.write_message(
                MessageSeverity.SETUP_ERROR,
                f"Checksum validation failed. File '{location.path}' was modified after the "
                f"benchmark was imported. Actual: '{document.loaded_checksum}', "
                f"expected: '{location.checksum or '<not recorded>'}'. Limits are not saved.",
                target=target.key,
            )
            return None

        analysis.write_message(
            MessageSeverity.INFORMATIONAL,
            f"Method {target.key}: annotating file '{location.path}'",
            target=target.key,
        )
        try:
            patched = patch_source_target(document, location, benchmark, changed)
        except AnnotationFormatError as exc:
            analysis.write_message(
                MessageSeverity.SETUP_ERROR, f"{exc} Limits are not saved.", target=target.key
            )
            return None
        if not patched:
            analysis.write_message(
                MessageSeverity.SETUP_ERROR,
                f"Method {target.key.name} not found in file '{location.path}'.",
                target=target.key,
            )
            return None
        context.add_target_key(target.key, document)
        self._report_updates(target, changed, analysis)
        return document

    def _patch_xml(
        self,
        target: CompetitionTarget,
        benchmark: BenchmarkInfo,
        location: SourceLocation,
        changed: list[CompetitionMetricValue],
        context: AnnotationContext,
        analysis: CompetitionAnalysis,
    ) -> AnnotationDocument | None:
        document = self._xml_document(benchmark, location, context)
        try:
            document.verify_unchanged()
            analysis.write_message(
                MessageSeverity.INFORMATIONAL,
                f"Method {target.key}: annotating file '{document.path}'",
                target=target.key,
            )
            document.update_candidate(target.key, changed)
        except AnnotationFormatError as exc:
            analysis.write_message(MessageSeverity.SETUP_ERROR, str(exc), target=target.key)
            return None
        except ValidationError as exc:
            analysis.write_message(
                MessageSeverity.SETUP_ERROR, f"{exc} Limits are not saved.", target=target.key
            )
            return None
        context.add_target_key(target.key, document)
        self._report_updates(target, changed, analysis)
        return document

    @staticmethod
    def _report_updates(
        target: CompetitionTarget,
        changed: Sequence[CompetitionMetricValue],
        analysis: CompetitionAnalysis,
    ) -> None:
        for value in changed:
            analysis.write_message(
                MessageSeverity.INFORMATIONAL,
                f"Metric {value.metric.metric_id} updated: "
                f"{format_range(value.values_range, value.display_unit)}",
                target=target.key,
            )
