"""
Lazy file migration out of the legacy store.

- MigrationTrigger: decides on every read whether to enqueue a migration
- MigrateFilesWorker: migrates derivatives and legacy files of one resource
- migration_guard: marks resources being migrated in the current context
- container_for / DerivativePathEnumerator: derivative classification and layout
"""

from lazymigrate.migration.derivatives import (
    DerivativePathEnumerator,
    container_for,
    mime_type_for,
    pair_path,
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
from lazymigrate.migration.guard import is_migrating, migration_guard, migrations_in_progress
from lazymigrate.migration.metrics import MigrationMetrics, MigrationMetricSnapshot
from lazymigrate.migration.trigger import (
    MIGRATE_FILES_WORKER,
    AlreadyMigratedPolicy,
    MigrationDecision,
    MigrationTrigger,
)
from lazymigrate.migration.worker import (
    MigrateFilesWorker,
    MigrationRunResult,
    MigrationState,
    UserResolver,
    default_user_resolver,
)

__all__ = [
    # Trigger
    "MigrationTrigger",
    "MigrationDecision",
    "AlreadyMigratedPolicy",
    "MIGRATE_FILES_WORKER",
    # Worker
    "MigrateFilesWorker",
    "MigrationRunResult",
    "MigrationState",
    "UserResolver",
    "default_user_resolver",
    # Guard
    "migration_guard",
    "is_migrating",
    "migrations_in_progress",
    # Derivatives
    "DerivativePathEnumerator",
    "container_for",
    "mime_type_for",
    "pair_path",
    # Metrics
    "MigrationMetrics",
    "MigrationMetricSnapshot",
    # Errors
    "MigrationError",
    "PartialMigrationFailure",
    "UnexpectedJobError",
    "FailedItem",
    "ErrorSeverity",
    "ErrorRecoverability",
    "ErrorClassification",
    "RetryConfig",
    "DEFAULT_JOB_RETRY_CONFIG",
    "classify_exception",
]
