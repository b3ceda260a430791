"""
Configuration for the lazy migration stack.

MigrationSettings gathers the knobs of every component in one immutable
object. Components also accept the same values as keyword arguments, so the
settings object is a convenience for wiring, not a requirement.

Example:
    >>> settings = MigrationSettings(
    ...     legacy_prefix="fedora:",
    ...     derivatives_root="/var/lib/repository/derivatives",
    ...     already_migrated_policy=AlreadyMigratedPolicy.ALL,
    ... )
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from lazymigrate.legacy.locator import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_FETCH_SCHEME,
    DEFAULT_LEGACY_PREFIX,
)
from lazymigrate.migration.exceptions import DEFAULT_JOB_RETRY_CONFIG, RetryConfig
from lazymigrate.migration.trigger import MIGRATE_FILES_WORKER, AlreadyMigratedPolicy


@dataclass(frozen=True)
class MigrationSettings:
    """
    Settings for lazy migration.

    Attributes:
        legacy_prefix: File identifier prefix marking legacy-store ownership
        fetch_scheme: Replacement for the prefix that makes identifiers fetchable
        derivatives_root: Root of the derivative pair-tree (None: skip derivatives)
        already_migrated_policy: When a file set counts as migrated (any/all file ids)
        worker_id: Worker id migration jobs are enqueued under
        fetch_timeout: Timeout in seconds for legacy-store requests
        fetch_chunk_size: Bytes per chunk when streaming legacy content
        retry_config: Backoff policy for failed migration jobs
        max_concurrent_jobs: Upper bound on simultaneously running jobs (None = unbounded)
        enable_tracing: Whether components emit OpenTelemetry spans
        enable_metrics: Whether components emit OpenTelemetry metrics
    """

    legacy_prefix: str = DEFAULT_LEGACY_PREFIX
    fetch_scheme: str = DEFAULT_FETCH_SCHEME
    derivatives_root: Path | None = None
    already_migrated_policy: AlreadyMigratedPolicy = AlreadyMigratedPolicy.ANY
    worker_id: str = MIGRATE_FILES_WORKER
    fetch_timeout: float = 30.0
    fetch_chunk_size: int = DEFAULT_CHUNK_SIZE
    retry_config: RetryConfig = field(default_factory=lambda: DEFAULT_JOB_RETRY_CONFIG)
    max_concurrent_jobs: int | None = None
    enable_tracing: bool = True
    enable_metrics: bool = True

    def __post_init__(self) -> None:
        """Validate and normalize configuration values."""
        if not self.legacy_prefix:
            raise ValueError("legacy_prefix must be a non-empty string, e.g. 'legacy:'.")

        if not self.fetch_scheme:
            raise ValueError("fetch_scheme must be a non-empty string, e.g. 'http:'.")

        if not self.worker_id:
            raise ValueError("worker_id must be a non-empty string.")

        if self.fetch_timeout <= 0:
            raise ValueError(
                f"fetch_timeout must be positive, got {self.fetch_timeout}. "
                "Use a value like 30.0 (default) seconds."
            )

        if self.fetch_chunk_size < 1:
            raise ValueError(f"fetch_chunk_size must be positive, got {self.fetch_chunk_size}.")

        if self.max_concurrent_jobs is not None and self.max_concurrent_jobs < 1:
            raise ValueError(
                f"max_concurrent_jobs must be positive or None, got {self.max_concurrent_jobs}."
            )

        # Frozen dataclass: normalize through object.__setattr__
        object.__setattr__(
            self,
            "already_migrated_policy",
            AlreadyMigratedPolicy(self.already_migrated_policy),
        )
        if self.derivatives_root is not None:
            object.__setattr__(self, "derivatives_root", Path(self.derivatives_root))


__all__ = ["MigrationSettings"]
