"""Tests for the exception hierarchy and ProcessingError records."""

import pytest

from folio.exceptions import (
    BreakdownValidationError,
    ConfigurationError,
    DataProcessingError,
    EnvConfigError,
    ErrorSeverity,
    FolioException,
    HoldingValidationError,
    OutputWriteError,
    UpstreamResponseError,
    ValidationError,
    wrap_exception_as_processing_error,
)


class TestHierarchy:

    @pytest.mark.schema
    @pytest.mark.parametrize("exc_type,family", [
        (UpstreamResponseError, DataProcessingError),
        (HoldingValidationError, ValidationError),
        (BreakdownValidationError, ValidationError),
        (EnvConfigError, ConfigurationError),
        (OutputWriteError, FolioException),
    ])
    def test_families(self, exc_type, family):
        assert issubclass(exc_type, family)
        assert issubclass(exc_type, FolioException)

    @pytest.mark.schema
    def test_error_code_defaults_to_class_name(self):
        err = HoldingValidationError("bad record")
        assert err.error_code == "HoldingValidationError"
        assert err.message == "bad record"
        assert str(err) == "bad record"

    @pytest.mark.schema
    def test_explicit_error_code(self):
        assert FolioException("x", error_code="E42").error_code == "E42"

    @pytest.mark.schema
    def test_upstream_status(self):
        assert UpstreamResponseError("Malformed JSON", status=200).status == 200
        assert UpstreamResponseError("timeout").status == 0


class TestProcessingError:

    @pytest.mark.schema
    def test_wrap_warning(self):
        err = wrap_exception_as_processing_error(
            HoldingValidationError("MSFT: invalid allocation_percent"),
            source="holding[1]",
            error_type="HOLDING_VALIDATION_ERROR",
            context={"ticker": "MSFT"},
        )
        assert err.severity is ErrorSeverity.WARNING
        assert err.traceback_str is None
        assert err.to_dict() == {
            "source": "holding[1]",
            "error_type": "HOLDING_VALIDATION_ERROR",
            "message": "MSFT: invalid allocation_percent",
            "severity": "warning",
            "traceback": None,
            "context": {"ticker": "MSFT"},
        }

    @pytest.mark.schema
    def test_critical_keeps_traceback(self):
        try:
            raise OutputWriteError("disk full")
        except OutputWriteError as e:
            err = wrap_exception_as_processing_error(e, "report", "OUTPUT_ERROR", ErrorSeverity.CRITICAL)
        assert "disk full" in err.traceback_str
        assert err.context == {}
