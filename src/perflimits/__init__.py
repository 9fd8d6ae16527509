"""perflimits: statistical performance limits that keep themselves up to date."""

from .annotations import (
    AnnotationContext,
    BenchmarkInfo,
    InspectSourceLocator,
    StaticSourceLocator,
    collect_benchmarks,
    competition_baseline,
    competition_benchmark,
    competition_limit,
    expected_allocations,
    expected_time,
    reset_log_cache,
    xml_annotations,
)
from .competition import (
    CompetitionOptions,
    CompetitionResult,
    MessageSeverity,
    RunSummary,
    merge_options,
)
from .competition.analyser import CompetitionAnalyser
from .core.exceptions import PerfLimitsError
from .metrics import IGNORED, MetricRange, PercentileCalculator

__version__ = "0.1.0"

__all__ = [
    "IGNORED",
    "AnnotationContext",
    "BenchmarkInfo",
    "CompetitionAnalyser",
    "CompetitionOptions",
    "CompetitionResult",
    "InspectSourceLocator",
    "MessageSeverity",
    "MetricRange",
    "PercentileCalculator",
    "PerfLimitsError",
    "RunSummary",
    "StaticSourceLocator",
    "__version__",
    "collect_benchmarks",
    "competition_baseline",
    "competition_benchmark",
    "competition_limit",
    "expected_allocations",
    "expected_time",
    "merge_options",
    "reset_log_cache",
    "xml_annotations",
]
