"""Competition model: targets, metric values, pass state and options.

The analyser lives in :mod:`perflimits.competition.analyser` and is re-exported
from the top-level package.
"""

from .messages import Message, MessageLog, MessageSeverity
from .options import AnnotationOptions, CheckOptions, CompetitionOptions, merge_options
from .state import AnalysisState, CompetitionAnalysis, CompetitionResult
from .summary import RunSummary, load_run_summaries, replay
from .types import (
    ALLOCATIONS,
    METRICS,
    RELATIVE_TIME,
    TIME,
    CompetitionMetricValue,
    CompetitionTarget,
    MetricInfo,
    TargetKey,
    get_metric,
)

__all__ = [
    "ALLOCATIONS",
    "METRICS",
    "RELATIVE_TIME",
    "TIME",
    "AnalysisState",
    "AnnotationOptions",
    "CheckOptions",
    "CompetitionAnalysis",
    "CompetitionMetricValue",
    "CompetitionOptions",
    "CompetitionResult",
    "CompetitionTarget",
    "Message",
    "MessageLog",
    "MessageSeverity",
    "MetricInfo",
    "RunSummary",
    "TargetKey",
    "get_metric",
    "load_run_summaries",
    "merge_options",
    "replay",
]
