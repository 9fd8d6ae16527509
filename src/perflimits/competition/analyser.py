"""Competition analyser: the multi-run verification and self-annotation loop."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence

from ..annotations.context import AnnotationContext
from ..annotations.decorators import BenchmarkInfo
from ..annotations.locator import InspectSourceLocator, SourceLocator
from ..annotations.log_reader import LOG_CACHE, PreviousRunLogCache, format_log_block
from ..annotations.rewriter import AnnotationRewriter
from ..annotations.xml_storage import (
    find_candidate,
    read_candidate_value,
    render_annotation_document,
)
from ..core.exceptions import AnnotationFormatError, ContractViolationError
from ..metrics.formatting import contains_with_rounding, format_range
from ..metrics.ranges import MetricRange, is_ignored_value
from .messages import MessageSeverity
from .options import CompetitionOptions
from .state import AnalysisState, CompetitionAnalysis, CompetitionResult
from .summary import RunSummary
from .types import CompetitionMetricValue, CompetitionTarget, get_metric

logger = logging.getLogger(__name__)

UPDATED_SOURCES_WARNING = (
    "The sources were updated with new annotations. "
    "Please check them before committing the changes."
)


def loosen(values: MetricRange, percent: float) -> MetricRange:
    """Widen a range by ``percent`` on both sides; sentinels are kept."""
    if values.is_empty or percent <= 0:
        return values
    factor = percent / 100.0
    lower = values.min if is_ignored_value(values.min) else values.min * (1 - factor)
    upper = values.max if is_ignored_value(values.max) else values.max * (1 + factor)
    return MetricRange(lower, upper)


class CompetitionAnalyser:
    """Runs a competition: prepare targets, check every run, adjust and save limits.

    ``measure`` is called once per run with the 1-based run number and returns the
    raw samples of that run. The loop is bounded by ``max_runs_allowed``.
    """

    def __init__(
        self,
        options: CompetitionOptions | None = None,
        *,
        locator: SourceLocator | None = None,
        log_cache: PreviousRunLogCache | None = None,
    ):
        self.options = options or CompetitionOptions()
        self.metrics = tuple(get_metric(metric_id) for metric_id in self.options.check.metrics)
        self.locator = locator or InspectSourceLocator()
        self.log_cache = log_cache or LOG_CACHE

    def run(
        self,
        benchmarks: Sequence[BenchmarkInfo],
        measure: Callable[[int], RunSummary],
        *,
        context: AnnotationContext | None = None,
    ) -> CompetitionResult:
        analysis = CompetitionAnalysis(max_runs_allowed=self.options.check.max_runs_allowed)
        rewriter = AnnotationRewriter(self.locator, self.metrics)
        owns_context = context is None
        context = context or AnnotationContext()
        try:
            while analysis.runs_left > 0:
                analysis.prepare_for_run()
                summary = measure(analysis.run_number)
                try:
                    context.run_in_context(
                        lambda ctx: self.analyse(analysis, benchmarks, summary, ctx, rewriter)
                    )
                except ContractViolationError as exc:
                    logger.exception("Competition aborted")
                    analysis.write_message(MessageSeverity.CRITICAL_ERROR, str(exc))
                    analysis.state = AnalysisState.FAILED
                    break
                if analysis.state in (AnalysisState.COMPLETED, AnalysisState.FAILED):
                    break
        finally:
            if owns_context:
                context.dispose()
        return analysis.to_result()

    def analyse(
        self,
        analysis: CompetitionAnalysis,
        benchmarks: Sequence[BenchmarkInfo],
        summary: RunSummary,
        context: AnnotationContext,
        rewriter: AnnotationRewriter,
    ) -> None:
        """Analyse one run. Must be called inside ``context.run_in_context``."""
        context.assert_in_lock()
        if analysis.run_number == 1:
            analysis.state = AnalysisState.PREPARING
            self._prepare_targets(analysis, benchmarks, context, rewriter)
            if not analysis.safe_to_continue:
                analysis.state = AnalysisState.FAILED
                return

        analysis.state = AnalysisState.CHECKING
        check_failed, adjusted = self._check_targets(analysis, summary)

        if any(target.has_unsaved_changes for target in analysis.targets):
            analysis.state = AnalysisState.ANNOTATING
            self._annotate_targets(analysis, context, rewriter)

        self._request_reruns(analysis, check_failed, adjusted)

        if analysis.looks_like_last_run:
            self._complete(analysis, check_failed)
        elif not analysis.safe_to_continue:
            analysis.state = AnalysisState.FAILED

    def _prepare_targets(
        self,
        analysis: CompetitionAnalysis,
        benchmarks: Sequence[BenchmarkInfo],
        context: AnnotationContext,
        rewriter: AnnotationRewriter,
    ) -> None:
        analysis.targets = rewriter.load_targets(benchmarks, context, analysis)
        if benchmarks and not analysis.targets:
            analysis.write_message(
                MessageSeverity.SETUP_ERROR, "No competition target could be prepared."
            )
            return

        log_uri = self.options.annotations.previous_run_log_uri
        if log_uri:
            self._seed_from_log(analysis, log_uri)

        if any(metric.is_relative for metric in self.metrics):
            baselines = [t for t in analysis.targets if t.is_baseline]
            if not baselines:
                analysis.write_message(
                    MessageSeverity.SETUP_ERROR,
                    "No baseline benchmark; relative metrics cannot be checked. "
                    "Mark one benchmark with @competition_baseline.",
                )
            elif len(baselines) > 1:
                names = ", ".join(str(t.key) for t in baselines)
                analysis.write_message(
                    MessageSeverity.SETUP_ERROR, f"More than one baseline benchmark: {names}."
                )

    def _seed_from_log(self, analysis: CompetitionAnalysis, log_uri: str) -> None:
        try:
            documents = self.log_cache.get(log_uri)
        except AnnotationFormatError as exc:
            analysis.write_message(MessageSeverity.SETUP_ERROR, str(exc))
            return
        if not documents:
            analysis.write_message(
                MessageSeverity.WARNING, f"No annotations found in the log '{log_uri}'."
            )
            return

        for target in analysis.targets:
            updated = False
            for root in documents:
                candidate = find_candidate(root, target.key)
                if candidate is None:
                    continue
                for value in target.metric_values.values():
                    if target.is_baseline and value.metric.is_relative:
                        continue
                    seed = read_candidate_value(
                        candidate, value.metric, analysis, target=target.key, origin=log_uri
                    )
                    if seed is not None and value.union_with(seed, force_unit_update=True):
                        updated = True
            if updated:
                analysis.write_message(
                    MessageSeverity.INFORMATIONAL,
                    f"Limits loaded from the previous run log '{log_uri}'.",
                    target=target.key,
                )

    def _check_targets(
        self, analysis: CompetitionAnalysis, summary: RunSummary
    ) -> tuple[bool, bool]:
        check_failed = False
        adjusted = False
        baseline = analysis.baseline
        for target in analysis.targets:
            for value in target.metric_values.values():
                metric = value.metric
                if target.is_baseline and metric.is_relative:
                    continue
                samples = summary.samples_for(target.key, metric.sample_kind)
                baseline_samples = None
                if metric.is_relative:
                    if baseline is None:
                        continue
                    baseline_samples = summary.samples_for(baseline.key, metric.sample_kind)
                result = self._check_metric(
                    analysis, target, value, samples, baseline_samples
                )
                if result == "failed":
                    check_failed = True
                elif result == "adjusted":
                    adjusted = True
        return check_failed, adjusted

    def _check_metric(
        self,
        analysis: CompetitionAnalysis,
        target: CompetitionTarget,
        value: CompetitionMetricValue,
        samples: Sequence[float],
        baseline_samples: Sequence[float] | None,
    ) -> str:
        metric = value.metric
        calculator = metric.calculator
        actual = calculator.try_get_actual_values(samples, baseline_samples)
        if actual.is_empty:
            analysis.write_message(
                MessageSeverity.INFORMATIONAL,
                f"Metric {metric.metric_id}: not enough data (empty samples or zero baseline), "
                "check skipped.",
                target=target.key,
            )
            return "skipped"

        limit = value.values_range
        unit = value.display_unit
        if unit.is_empty:
            unit = metric.units.unit_for_range(actual)
        if not limit.is_empty and contains_with_rounding(limit, actual, unit):
            logger.debug("%s %s: %s fits %s", target.key, metric.metric_id, actual, limit)
            return "fits"

        annotations = self.options.annotations
        if limit.is_empty and not annotations.adjust_limits:
            analysis.write_message(
                MessageSeverity.INFORMATIONAL,
                f"Metric {metric.metric_id} has no limit, actual value is "
                f"{format_range(actual, unit)}.",
                target=target.key,
            )
            return "fits"

        text = (
            f"Metric {metric.metric_id} {format_range(actual, unit)} "
            f"is out of limit {format_range(limit, unit)}."
        )
        if not annotations.adjust_limits:
            analysis.write_message(MessageSeverity.TEST_ERROR, text, target=target.key)
            return "failed"
        can_adjust = analysis.run_number > annotations.skip_runs_before_adjustment or (
            limit.is_empty and annotations.force_adjust_empty_limits
        )
        if not can_adjust:
            analysis.write_message(
                MessageSeverity.WARNING,
                f"{text} Adjustment is skipped until run "
                f"{annotations.skip_runs_before_adjustment + 1}.",
                target=target.key,
            )
            return "failed"

        limit_values = calculator.try_get_limit_values(samples, baseline_samples).union(actual)
        limit_values = loosen(limit_values, annotations.loose_limits_by_percent)
        update = CompetitionMetricValue(
            metric, limit_values, metric.units.unit_for_range(limit_values)
        )
        previous = format_range(limit, unit)
        if not value.union_with(update):
            return "fits"
        analysis.write_message(
            MessageSeverity.WARNING,
            f"Metric {metric.metric_id} {format_range(actual, unit)} is out of limit "
            f"{previous}; limits adjusted to "
            f"{format_range(value.values_range, value.display_unit)}, rerun requested.",
            target=target.key,
        )
        return "adjusted"

    def _annotate_targets(
        self,
        analysis: CompetitionAnalysis,
        context: AnnotationContext,
        rewriter: AnnotationRewriter,
    ) -> None:
        dirty = [t for t in analysis.targets if t.has_unsaved_changes]
        if self.options.annotations.dont_save:
            for target in dirty:
                target.mark_as_saved()
            analysis.write_message(
                MessageSeverity.INFORMATIONAL,
                f"Adjusted limits of {len(dirty)} target(s) are not saved (dont_save is set).",
            )
            return

        saved = rewriter.save_targets(dirty, context, analysis)
        if saved:
            analysis.write_message(MessageSeverity.WARNING, UPDATED_SOURCES_WARNING)
        for target in dirty:
            if target.has_unsaved_changes:
                analysis.write_message(
                    MessageSeverity.WARNING,
                    "Adjusted limits were not saved.",
                    target=target.key,
                )

    def _request_reruns(
        self, analysis: CompetitionAnalysis, check_failed: bool, adjusted: bool
    ) -> None:
        if not analysis.safe_to_continue:
            analysis.runs_left = 0
            return
        reruns_if_adjusted = self.options.annotations.reruns_if_adjusted
        if adjusted and reruns_if_adjusted > 0:
            analysis.request_reruns(
                reruns_if_adjusted, "limits were adjusted, validating against fresh measurements"
            )
        elif check_failed:
            if analysis.run_number < self.options.check.reruns_if_validation_failed:
                analysis.request_reruns(1, "metrics are out of limits, checking again")

    def _complete(self, analysis: CompetitionAnalysis, check_failed: bool) -> None:
        unsaved = [t for t in analysis.targets if t.has_unsaved_changes]
        if self.options.annotations.log_annotations or unsaved:
            xml_text = render_annotation_document(analysis.targets)
            analysis.annotation_log = format_log_block(xml_text)
            logger.info("Competition annotations:\n%s", analysis.annotation_log)

        if unsaved:
            names = ", ".join(str(t.key) for t in unsaved)
            analysis.write_message(
                MessageSeverity.WARNING,
                f"Targets with unsaved limits: {names}. Limits are written to the log.",
            )

        failed = (
            check_failed
            or not analysis.safe_to_continue
            or analysis.rerun_budget_exhausted
            or analysis.has_errors_in_run()
            or bool(unsaved)
        )
        if failed:
            analysis.state = AnalysisState.FAILED
            return
        analysis.state = AnalysisState.COMPLETED
        analysis.write_message(
            MessageSeverity.INFORMATIONAL, "All competition metrics are ok."
        )
