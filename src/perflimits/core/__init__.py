"""Core building blocks shared across perflimits."""

from .exceptions import (
    AnnotationFormatError,
    AnnotationSaveError,
    ChecksumMismatchError,
    ConfigurationError,
    ContractViolationError,
    DocumentKindError,
    PerfLimitsError,
    ValidationError,
)

__all__ = [
    "AnnotationFormatError",
    "AnnotationSaveError",
    "ChecksumMismatchError",
    "ConfigurationError",
    "ContractViolationError",
    "DocumentKindError",
    "PerfLimitsError",
    "ValidationError",
]
