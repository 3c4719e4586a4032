"""
Exception hierarchy for the Folio core.

Market-data failures are soft: the fetch client turns every upstream
problem into a FetchResult value, and the exposure aggregator degrades
unknown data to the "Other" sector. The exceptions below are raised at
the edges where bad input should stop the caller (holding records,
breakdown tables, environment configuration, report output) and inside
the fetch client where they are caught and recorded.

Loaders that keep going past a bad record collect ProcessingError
entries instead of raising.
"""

import traceback
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class ErrorSeverity(Enum):
    """How a collected problem affects the run."""

    CRITICAL = "critical"
    """The run cannot produce a meaningful result"""

    WARNING = "warning"
    """One record was skipped; the rest were used"""


@dataclass
class ProcessingError:
    """A rejected record or other non-fatal problem, kept for reporting."""

    source: str
    """Record locator, e.g. "holding[3]" or a file name"""

    error_type: str
    message: str
    severity: ErrorSeverity
    traceback_str: Optional[str] = None
    context: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "source": self.source,
            "error_type": self.error_type,
            "message": self.message,
            "severity": self.severity.value,
            "traceback": self.traceback_str,
            "context": self.context,
        }


# --- Base classes ---

class FolioException(Exception):
    """
    Base exception for all Folio errors.

    `error_code` defaults to the class name so callers and logs can group
    failures without matching on message text.
    """

    def __init__(self, message: str, error_code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or type(self).__name__


class DataProcessingError(FolioException):
    """Market data could not be retrieved or interpreted."""


class ValidationError(FolioException):
    """Caller-supplied holdings or breakdowns are malformed."""


class ConfigurationError(FolioException):
    """The environment or settings are unusable."""


# --- Market data ---

class UpstreamResponseError(DataProcessingError):
    """
    An upstream response arrived but cannot be used (bad or empty JSON).

    Raised and caught inside ResilientFetchClient, where it counts as a
    failed attempt; `status` is the HTTP code of the offending response.
    """

    def __init__(self, message: str, status: int = 0):
        super().__init__(message)
        self.status = status


# --- Input ---

class HoldingValidationError(ValidationError):
    """A holding record has no ticker, a bad type or an out-of-range allocation."""


class BreakdownValidationError(ValidationError):
    """A fund sector breakdown has negative or non-numeric weights."""


# --- Configuration and output ---

class EnvConfigError(ConfigurationError):
    """A FOLIO_* environment variable holds an unusable value."""


class OutputWriteError(FolioException):
    """The exposure workbook could not be written."""


def wrap_exception_as_processing_error(
    exception: Exception,
    source: str,
    error_type: str,
    severity: ErrorSeverity = ErrorSeverity.WARNING,
    context: Optional[dict] = None,
) -> ProcessingError:
    """
    Record a caught exception as a ProcessingError.

    The traceback is captured only for CRITICAL entries, so call this from
    inside the `except` block that caught `exception`.
    """
    return ProcessingError(
        source=source,
        error_type=error_type,
        message=str(exception),
        severity=severity,
        traceback_str=traceback.format_exc() if severity is ErrorSeverity.CRITICAL else None,
        context=context or {},
    )
