"""Where limits live: inline decorators, XML sidecars and previous run logs."""

from .context import AnnotationContext, AnnotationDocument, ContentKind, UnknownOriginDocument
from .decorators import (
    BenchmarkInfo,
    collect_benchmarks,
    competition_baseline,
    competition_benchmark,
    competition_limit,
    expected_allocations,
    expected_time,
    xml_annotations,
)
from .locator import InspectSourceLocator, SourceLocation, SourceLocator, StaticSourceLocator
from .log_reader import (
    LOG_ANNOTATION_END,
    LOG_ANNOTATION_START,
    PreviousRunLogCache,
    parse_log_text,
    reset_log_cache,
)
from .rewriter import AnnotationRewriter
from .source_storage import SourceDocument
from .xml_storage import XmlDocument

__all__ = [
    "LOG_ANNOTATION_END",
    "LOG_ANNOTATION_START",
    "AnnotationContext",
    "AnnotationDocument",
    "AnnotationRewriter",
    "BenchmarkInfo",
    "ContentKind",
    "InspectSourceLocator",
    "PreviousRunLogCache",
    "SourceDocument",
    "SourceLocation",
    "SourceLocator",
    "StaticSourceLocator",
    "UnknownOriginDocument",
    "XmlDocument",
    "collect_benchmarks",
    "competition_baseline",
    "competition_benchmark",
    "competition_limit",
    "expected_allocations",
    "expected_time",
    "parse_log_text",
    "reset_log_cache",
    "xml_annotations",
]
