"""
Migration errors and how the job queue treats them.

Exception Hierarchy:
    MigrationError (base)
    +-- PartialMigrationFailure   some derivatives or files failed
    +-- UnexpectedJobError        anything else escaping a worker run

Trigger outcomes (not applicable, already migrated, in progress) are
MigrationDecision statuses and are never raised.

The queue asks :func:`classify_exception` whether a failed job should run
again and at which level to log it. Almost every failure is worth a retry,
since the worker skips whatever already moved.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any

from lazymigrate.exceptions import (
    BackendUnavailableError,
    LegacyContentReadError,
    ResourceNotFoundError,
)


class ErrorSeverity(IntEnum):
    """How loudly a failure is logged; values are logging levels."""

    WARNING = logging.WARNING
    ERROR = logging.ERROR
    CRITICAL = logging.CRITICAL

    @property
    def log_level(self) -> int:
        return int(self)


class ErrorRecoverability(Enum):
    """
    Whether running the job again can succeed.

    TRANSIENT errors (outages, timeouts) usually clear on their own.
    RECOVERABLE errors may need someone to fix data or configuration first.
    FATAL errors never succeed on retry.
    """

    TRANSIENT = "transient"
    RECOVERABLE = "recoverable"
    FATAL = "fatal"

    @property
    def should_retry(self) -> bool:
        return self is not ErrorRecoverability.FATAL


@dataclass(frozen=True)
class ErrorClassification:
    """Retry and logging metadata for one kind of failure."""

    error_code: str
    severity: ErrorSeverity
    recoverability: ErrorRecoverability
    labels: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error_code": self.error_code,
            "severity": self.severity.name.lower(),
            "recoverability": self.recoverability.value,
            **({"labels": dict(self.labels)} if self.labels else {}),
        }


@dataclass(frozen=True)
class RetryConfig:
    """
    Exponential backoff for failed jobs.

    Attempt ``n`` (0 = the first failure) waits
    ``base_delay_ms * exponential_base ** n`` capped at ``max_delay_ms``,
    scaled by a random factor in ``[1 - jitter_factor, 1 + jitter_factor]``.

    Attributes:
        max_attempts: Total runs of a job, the first one included
    """

    max_attempts: int = 3
    base_delay_ms: float = 100.0
    max_delay_ms: float = 30_000.0
    exponential_base: float = 2.0
    jitter_factor: float = 0.1

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts}")
        if not 0 <= self.base_delay_ms <= self.max_delay_ms:
            raise ValueError(
                "delays must satisfy 0 <= base_delay_ms <= max_delay_ms, got "
                f"base_delay_ms={self.base_delay_ms}, max_delay_ms={self.max_delay_ms}"
            )
        if self.exponential_base < 1:
            raise ValueError(f"exponential_base must be >= 1, got {self.exponential_base}")
        if not 0 <= self.jitter_factor <= 1:
            raise ValueError(f"jitter_factor must be within [0, 1], got {self.jitter_factor}")

    def get_delay_ms(self, attempt: int) -> float:
        delay = min(self.base_delay_ms * self.exponential_base**attempt, self.max_delay_ms)
        if self.jitter_factor:
            delay *= random.uniform(1 - self.jitter_factor, 1 + self.jitter_factor)  # nosec B311
        return delay

    def to_dict(self) -> dict[str, Any]:
        return {
            "max_attempts": self.max_attempts,
            "base_delay_ms": self.base_delay_ms,
            "max_delay_ms": self.max_delay_ms,
            "exponential_base": self.exponential_base,
            "jitter_factor": self.jitter_factor,
        }


DEFAULT_JOB_RETRY_CONFIG = RetryConfig(
    max_attempts=5,
    base_delay_ms=1_000.0,
    max_delay_ms=60_000.0,
    jitter_factor=0.2,
)


class MigrationError(Exception):
    """
    Base class for errors raised by a migration run.

    Attributes:
        resource_id: Resource the run was migrating
    """

    classification_default = ErrorClassification(
        error_code="MIGRATION_ERROR",
        severity=ErrorSeverity.ERROR,
        recoverability=ErrorRecoverability.RECOVERABLE,
    )

    def __init__(self, message: str, *, resource_id: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.resource_id = resource_id

    def __str__(self) -> str:
        if self.resource_id is None:
            return self.message
        return f"[{self.resource_id}] {self.message}"

    @property
    def classification(self) -> ErrorClassification:
        return self.classification_default

    @property
    def severity(self) -> ErrorSeverity:
        return self.classification.severity

    @property
    def error_code(self) -> str:
        return self.classification.error_code

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "resource_id": self.resource_id,
            "classification": self.classification.to_dict(),
        }


@dataclass(frozen=True)
class FailedItem:
    """
    One derivative or file that could not be migrated.

    Attributes:
        kind: "derivative" or "file"
        reference: Derivative path or file id
        error: The exception raised while migrating it
    """

    kind: str
    reference: str
    error: BaseException

    def __str__(self) -> str:
        return f"{self.kind} {self.reference}: {self.error}"


class PartialMigrationFailure(MigrationError):
    """
    A worker run finished, but some items failed.

    Sibling items were still migrated; the run counts as failed so the queue
    retries it, and the retry only redoes what is left.
    """

    classification_default = ErrorClassification(
        error_code="MIGRATION_PARTIAL_FAILURE",
        severity=ErrorSeverity.WARNING,
        recoverability=ErrorRecoverability.TRANSIENT,
    )

    def __init__(self, resource_id: str, failures: Sequence[FailedItem]) -> None:
        self.failures = list(failures)
        summary = "; ".join(str(f) for f in self.failures)
        super().__init__(
            f"{len(self.failures)} item(s) failed to migrate: {summary}",
            resource_id=resource_id,
        )


class UnexpectedJobError(MigrationError):
    """
    Wraps any other exception escaping a worker run.

    Classified like the wrapped exception, available as ``cause`` and
    ``__cause__``.
    """

    def __init__(self, resource_id: str, cause: BaseException) -> None:
        self.cause = cause
        super().__init__(
            f"Migration job failed with {type(cause).__name__}: {cause}",
            resource_id=resource_id,
        )

    @property
    def classification(self) -> ErrorClassification:
        return classify_exception(self.cause)


_Rule = tuple[tuple[type[BaseException], ...], str, ErrorSeverity, ErrorRecoverability]

_CLASSIFICATIONS: tuple[_Rule, ...] = (
    (
        (BackendUnavailableError, LegacyContentReadError, TimeoutError, OSError),
        "MIGRATION_IO_ERROR",
        ErrorSeverity.WARNING,
        ErrorRecoverability.TRANSIENT,
    ),
    (
        (ResourceNotFoundError,),
        "MIGRATION_RESOURCE_GONE",
        ErrorSeverity.WARNING,
        ErrorRecoverability.FATAL,
    ),
)


def classify_exception(exc: BaseException) -> ErrorClassification:
    """
    Retry and logging metadata for any exception.

    MigrationErrors carry their own classification. Connectivity problems
    are transient, a resource deleted before its migration ran is fatal,
    and everything else is treated as recoverable.
    """
    if isinstance(exc, MigrationError):
        return exc.classification

    labels = {"exception_type": type(exc).__name__}
    for types, error_code, severity, recoverability in _CLASSIFICATIONS:
        if isinstance(exc, types):
            return ErrorClassification(error_code, severity, recoverability, labels)
    return ErrorClassification(
        "MIGRATION_UNEXPECTED",
        ErrorSeverity.ERROR,
        ErrorRecoverability.RECOVERABLE,
        labels,
    )


__all__ = [
    "ErrorSeverity",
    "ErrorRecoverability",
    "ErrorClassification",
    "RetryConfig",
    "DEFAULT_JOB_RETRY_CONFIG",
    "MigrationError",
    "FailedItem",
    "PartialMigrationFailure",
    "UnexpectedJobError",
    "classify_exception",
]
