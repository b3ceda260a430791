"""
OpenTelemetry metrics for lazy migration.

Tracks trigger decisions, migrated files and derivatives, item failures and
job duration. Without OpenTelemetry installed every instrument is a no-op,
while the in-process snapshot keeps counting so tests can assert on it.

Example:
    >>> metrics = MigrationMetrics()
    >>> metrics.record_decision("enqueued")
    >>> metrics.record_file_migrated("original_file")
    >>> metrics.snapshot().decisions
    {'enqueued': 1}

Metrics Exposed:
    - lazymigrate.trigger.decisions (Counter): Trigger decisions by outcome
    - lazymigrate.files.migrated (Counter): Primary files moved out of the legacy store
    - lazymigrate.derivatives.migrated (Counter): Derivatives persisted
    - lazymigrate.items.failed (Counter): Files or derivatives that failed to migrate
    - lazymigrate.job.duration (Histogram): Worker run time in milliseconds
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Any

try:
    from opentelemetry import metrics

    OTEL_METRICS_AVAILABLE = True
except ImportError:
    OTEL_METRICS_AVAILABLE = False
    metrics = None  # type: ignore[assignment]


_meter: Any = None


def _get_meter() -> Any:
    global _meter
    if _meter is None and OTEL_METRICS_AVAILABLE and metrics is not None:
        _meter = metrics.get_meter("lazymigrate.migration", version="1.0.0")
    return _meter


def reset_meter() -> None:
    """Reset the module meter; used by tests."""
    global _meter
    _meter = None


class NoOpCounter:
    """Counter used when OpenTelemetry is not available."""

    def add(self, amount: int | float, attributes: dict[str, Any] | None = None) -> None:
        pass


class NoOpHistogram:
    """Histogram used when OpenTelemetry is not available."""

    def record(self, value: float, attributes: dict[str, Any] | None = None) -> None:
        pass


@dataclass
class MigrationMetricSnapshot:
    """Values recorded so far, independent of any exporter."""

    decisions: dict[str, int] = field(default_factory=dict)
    files_migrated: int = 0
    derivatives_migrated: int = 0
    items_failed: int = 0
    jobs_completed: int = 0
    jobs_failed: int = 0
    total_job_duration_ms: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "decisions": dict(self.decisions),
            "files_migrated": self.files_migrated,
            "derivatives_migrated": self.derivatives_migrated,
            "items_failed": self.items_failed,
            "jobs_completed": self.jobs_completed,
            "jobs_failed": self.jobs_failed,
            "total_job_duration_ms": self.total_job_duration_ms,
        }


@dataclass
class MigrationMetrics:
    """
    Container for migration metric instruments.

    Attributes:
        worker_id: Value of the ``worker`` attribute on every data point
        enable_metrics: Whether OpenTelemetry instruments are created
    """

    worker_id: str = "migrate_files"
    enable_metrics: bool = True

    _meter: Any = field(default=None, init=False, repr=False)
    _decisions_counter: Any = field(default=None, init=False, repr=False)
    _files_counter: Any = field(default=None, init=False, repr=False)
    _derivatives_counter: Any = field(default=None, init=False, repr=False)
    _failures_counter: Any = field(default=None, init=False, repr=False)
    _duration_histogram: Any = field(default=None, init=False, repr=False)

    _decision_counts: Counter[str] = field(default_factory=Counter, init=False, repr=False)
    _files: int = field(default=0, init=False, repr=False)
    _derivatives: int = field(default=0, init=False, repr=False)
    _failures: int = field(default=0, init=False, repr=False)
    _jobs_completed: int = field(default=0, init=False, repr=False)
    _jobs_failed: int = field(default=0, init=False, repr=False)
    _total_duration_ms: float = field(default=0.0, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.enable_metrics and OTEL_METRICS_AVAILABLE:
            self._setup_metrics()
        else:
            self._setup_noop()

    def _setup_metrics(self) -> None:
        self._meter = _get_meter()
        if self._meter is None:
            self._setup_noop()
            return

        self._decisions_counter = self._meter.create_counter(
            name="lazymigrate.trigger.decisions",
            unit="decisions",
            description="Migration trigger decisions by outcome",
        )
        self._files_counter = self._meter.create_counter(
            name="lazymigrate.files.migrated",
            unit="files",
            description="Primary files moved out of the legacy store",
        )
        self._derivatives_counter = self._meter.create_counter(
            name="lazymigrate.derivatives.migrated",
            unit="files",
            description="Derivative files persisted to the destination backend",
        )
        self._failures_counter = self._meter.create_counter(
            name="lazymigrate.items.failed",
            unit="files",
            description="Files or derivatives that failed to migrate",
        )
        self._duration_histogram = self._meter.create_histogram(
            name="lazymigrate.job.duration",
            unit="ms",
            description="Migration worker run time in milliseconds",
        )

    def _setup_noop(self) -> None:
        self._decisions_counter = NoOpCounter()
        self._files_counter = NoOpCounter()
        self._derivatives_counter = NoOpCounter()
        self._failures_counter = NoOpCounter()
        self._duration_histogram = NoOpHistogram()

    def record_decision(self, decision: str) -> None:
        self._decisions_counter.add(1, {"worker": self.worker_id, "decision": decision})
        self._decision_counts[decision] += 1

    def record_derivative_migrated(self, use: str) -> None:
        self._derivatives_counter.add(1, {"worker": self.worker_id, "use": use})
        self._derivatives += 1

    def record_file_migrated(self, use: str) -> None:
        self._files_counter.add(1, {"worker": self.worker_id, "use": use})
        self._files += 1

    def record_item_failed(self, kind: str, error_type: str) -> None:
        """
        Record a derivative or file that failed to migrate.

        Args:
            kind: "derivative" or "file"
            error_type: Exception class name
        """
        self._failures_counter.add(
            1, {"worker": self.worker_id, "kind": kind, "error.type": error_type}
        )
        self._failures += 1

    def record_job(self, duration_ms: float, status: str) -> None:
        self._duration_histogram.record(duration_ms, {"worker": self.worker_id, "status": status})
        self._total_duration_ms += duration_ms
        if status == "success":
            self._jobs_completed += 1
        else:
            self._jobs_failed += 1

    def snapshot(self) -> MigrationMetricSnapshot:
        return MigrationMetricSnapshot(
            decisions=dict(self._decision_counts),
            files_migrated=self._files,
            derivatives_migrated=self._derivatives,
            items_failed=self._failures,
            jobs_completed=self._jobs_completed,
            jobs_failed=self._jobs_failed,
            total_job_duration_ms=self._total_duration_ms,
        )


__all__ = [
    "MigrationMetrics",
    "MigrationMetricSnapshot",
    "NoOpCounter",
    "NoOpHistogram",
    "OTEL_METRICS_AVAILABLE",
    "reset_meter",
]
