"""Custom exceptions for perflimits."""

from __future__ import annotations


class PerfLimitsError(Exception):
    """Base exception for all perflimits errors."""

    pass


class ConfigurationError(PerfLimitsError):
    """Raised when options, unit scales or calculators are invalid."""

    def __init__(self, message: str, config_name: str | None = None):
        self.config_name = config_name
        if config_name:
            message = f"[{config_name}] {message}"
        super().__init__(message)


class ValidationError(PerfLimitsError):
    """Raised when runtime validation fails."""

    pass


class ChecksumMismatchError(ValidationError):
    """Raised when a file changed since the checksum for it was recorded."""

    def __init__(self, path: str, expected: str | None, actual: str | None):
        self.path = path
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Checksum validation failed. File '{path}'. "
            f"Actual: '{actual or '<missing>'}', expected: '{expected or '<missing>'}'."
        )


class AnnotationFormatError(ValidationError):
    """Raised when an XML annotation document or run log cannot be parsed."""

    pass


class ContractViolationError(PerfLimitsError):
    """Raised when an API is used in a way its contract forbids.

    These are programming errors, never retried.
    """

    pass


class DocumentKindError(ContractViolationError):
    """Raised when a document is accessed as the wrong content kind."""

    pass


class AnnotationSaveError(PerfLimitsError):
    """Raised by ``AnnotationContext.save`` when one or more documents failed to write."""

    def __init__(self, failures: dict[str, Exception]):
        self.failures = dict(failures)
        details = "; ".join(f"{origin}: {exc}" for origin, exc in self.failures.items())
        super().__init__(f"Failed to save {len(self.failures)} annotation document(s): {details}")
