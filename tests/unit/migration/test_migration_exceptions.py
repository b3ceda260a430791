"""
Unit tests for migration errors, error classification and RetryConfig.
"""

import logging
from unittest.mock import patch

import pytest

from lazymigrate.exceptions import (
    BackendUnavailableError,
    LegacyContentReadError,
    ResourceNotFoundError,
)
from lazymigrate.migration.exceptions import (
    DEFAULT_JOB_RETRY_CONFIG,
    ErrorClassification,
    ErrorRecoverability,
    ErrorSeverity,
    FailedItem,
    MigrationError,
    PartialMigrationFailure,
    RetryConfig,
    UnexpectedJobError,
    classify_exception,
)


class TestErrorEnums:
    """Tests for severity and recoverability."""

    def test_severity_maps_to_log_levels(self):
        """Severities log at the matching logging level."""
        assert ErrorSeverity.WARNING.log_level == logging.WARNING
        assert ErrorSeverity.ERROR.log_level == logging.ERROR
        assert ErrorSeverity.CRITICAL.log_level == logging.CRITICAL

    def test_only_fatal_errors_are_not_retried(self):
        """Transient and recoverable errors are retried."""
        assert ErrorRecoverability.TRANSIENT.should_retry
        assert ErrorRecoverability.RECOVERABLE.should_retry
        assert not ErrorRecoverability.FATAL.should_retry

    def test_classification_to_dict(self):
        """Classifications serialize for logs."""
        classification = ErrorClassification(
            "MIGRATION_IO_ERROR",
            ErrorSeverity.WARNING,
            ErrorRecoverability.TRANSIENT,
            {"exception_type": "OSError"},
        )
        assert classification.to_dict() == {
            "error_code": "MIGRATION_IO_ERROR",
            "severity": "warning",
            "recoverability": "transient",
            "labels": {"exception_type": "OSError"},
        }


class TestMigrationErrors:
    """Tests for the MigrationError hierarchy."""

    def test_str_includes_resource_id(self):
        """Errors name the resource they were raised for."""
        assert str(MigrationError("boom", resource_id="fs-1")) == "[fs-1] boom"
        assert str(MigrationError("boom")) == "boom"

    def test_partial_failure(self):
        """Partial failures summarize the failed items."""
        error = PartialMigrationFailure(
            "fs-1",
            [
                FailedItem("derivative", "/d/fs-thumbnail.jpg", OSError("disk full")),
                FailedItem("file", "f2", TimeoutError("slow")),
            ],
        )

        assert error.resource_id == "fs-1"
        assert len(error.failures) == 2
        assert "2 item(s) failed" in str(error)
        assert "file f2: slow" in str(error)
        assert error.error_code == "MIGRATION_PARTIAL_FAILURE"
        assert error.classification.recoverability is ErrorRecoverability.TRANSIENT

    def test_unexpected_error_classified_by_cause(self):
        """Unexpected errors take the classification of their cause."""
        gone = UnexpectedJobError("fs-1", ResourceNotFoundError("fs-1"))
        outage = UnexpectedJobError("fs-1", BackendUnavailableError("primary"))

        assert gone.classification.recoverability is ErrorRecoverability.FATAL
        assert outage.classification.recoverability is ErrorRecoverability.TRANSIENT
        assert "ResourceNotFoundError" in str(gone)

    def test_to_dict(self):
        """Errors serialize with their classification."""
        data = MigrationError("boom", resource_id="fs-1").to_dict()
        assert data["message"] == "boom"
        assert data["resource_id"] == "fs-1"
        assert data["classification"]["error_code"] == "MIGRATION_ERROR"


class TestClassifyException:
    """Tests for classify_exception."""

    @pytest.mark.parametrize(
        "error",
        [
            BackendUnavailableError("legacy"),
            LegacyContentReadError("legacy://x", "HTTP 503"),
            TimeoutError(),
            ConnectionResetError(),
            OSError("disk full"),
        ],
    )
    def test_io_errors_are_transient(self, error: BaseException):
        """Outages and I/O problems are expected to clear up."""
        classification = classify_exception(error)
        assert classification.error_code == "MIGRATION_IO_ERROR"
        assert classification.recoverability is ErrorRecoverability.TRANSIENT
        assert classification.severity is ErrorSeverity.WARNING

    def test_missing_resource_is_fatal(self):
        """A resource deleted before its migration ran will never migrate."""
        classification = classify_exception(ResourceNotFoundError("fs-1"))
        assert classification.recoverability is ErrorRecoverability.FATAL
        assert classification.labels == {"exception_type": "ResourceNotFoundError"}

    def test_other_errors_are_recoverable(self):
        """Unknown errors are retried and logged as errors."""
        classification = classify_exception(ValueError("bad"))
        assert classification.error_code == "MIGRATION_UNEXPECTED"
        assert classification.severity is ErrorSeverity.ERROR
        assert classification.recoverability is ErrorRecoverability.RECOVERABLE

    def test_migration_errors_keep_their_classification(self):
        """MigrationErrors are not reclassified."""
        error = PartialMigrationFailure("fs-1", [])
        assert classify_exception(error) is error.classification


class TestRetryConfig:
    """Tests for RetryConfig."""

    def test_defaults(self):
        """Job defaults retry a handful of times with seconds of backoff."""
        assert DEFAULT_JOB_RETRY_CONFIG.max_attempts == 5
        assert DEFAULT_JOB_RETRY_CONFIG.base_delay_ms == 1_000.0

    def test_exponential_delay_without_jitter(self):
        """Delays double per attempt up to the cap."""
        config = RetryConfig(base_delay_ms=100, max_delay_ms=1_000, jitter_factor=0)
        assert [config.get_delay_ms(n) for n in range(5)] == [100, 200, 400, 800, 1_000]

    def test_jitter_bounds(self):
        """Jitter scales the delay within the configured factor."""
        config = RetryConfig(base_delay_ms=1_000, max_delay_ms=1_000, jitter_factor=0.5)
        with patch("lazymigrate.migration.exceptions.random.uniform", return_value=1.5) as uniform:
            assert config.get_delay_ms(0) == 1_500
        uniform.assert_called_once_with(0.5, 1.5)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"max_attempts": 0},
            {"base_delay_ms": -1},
            {"base_delay_ms": 10, "max_delay_ms": 5},
            {"exponential_base": 0.5},
            {"jitter_factor": 1.5},
        ],
    )
    def test_invalid_values(self, kwargs: dict):
        """Nonsensical settings are rejected."""
        with pytest.raises(ValueError):
            RetryConfig(**kwargs)

    def test_to_dict(self):
        """Retry settings serialize for logs."""
        assert RetryConfig().to_dict()["max_attempts"] == 3
