"""
lazymigrate - lazy, transparent migration between two resource stores.

This library provides:
- A federated query service reading from a primary and a legacy store
- A migration trigger that fires as resources are materialized
- A background worker moving files and derivatives out of the legacy store
- In-memory and SQLAlchemy metadata adapters, in-memory and disk storage
- An asyncio task queue with retry and backoff
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("lazymigrate")
except PackageNotFoundError:
    # Package not installed (running from source without install)
    __version__ = "0.0.0.dev0"

from lazymigrate.bootstrap import LazyMigrationStack, build_lazy_migration
from lazymigrate.config import MigrationSettings
from lazymigrate.exceptions import (
    BackendUnavailableError,
    DuplicateResourceTypeError,
    LazyMigrateError,
    LegacyContentReadError,
    ResourceNotFoundError,
    UnknownResourceTypeError,
)
from lazymigrate.jobs import AsyncioTaskQueue, TaskQueue, UnknownWorkerError
from lazymigrate.legacy import LegacyContentLocator
from lazymigrate.migration import (
    AlreadyMigratedPolicy,
    DerivativePathEnumerator,
    MigrateFilesWorker,
    MigrationDecision,
    MigrationError,
    MigrationMetrics,
    MigrationRunResult,
    MigrationState,
    MigrationTrigger,
    PartialMigrationFailure,
    RetryConfig,
    UnexpectedJobError,
    container_for,
    is_migrating,
    migration_guard,
    mime_type_for,
)
from lazymigrate.query import (
    FederatedQueryService,
    InMemoryMetadataAdapter,
    Persister,
    QueryService,
)
from lazymigrate.resources import (
    FileMetadata,
    FileSet,
    RawRecord,
    Resource,
    ResourceMaterializer,
    ResourceTypeRegistry,
    StoredFile,
    Use,
    User,
    Work,
    default_registry,
    exposes_file_ids,
    filter_uses,
    register_resource,
)
from lazymigrate.storage import (
    DerivativeTarget,
    DiskStorageBackend,
    InMemoryStorageBackend,
    StorageBackend,
)

__all__ = [
    "__version__",
    # Wiring
    "build_lazy_migration",
    "LazyMigrationStack",
    "MigrationSettings",
    # Exceptions
    "LazyMigrateError",
    "ResourceNotFoundError",
    "BackendUnavailableError",
    "LegacyContentReadError",
    "UnknownResourceTypeError",
    "DuplicateResourceTypeError",
    # Resources
    "Resource",
    "Work",
    "FileSet",
    "FileMetadata",
    "RawRecord",
    "StoredFile",
    "User",
    "Use",
    "filter_uses",
    "exposes_file_ids",
    "ResourceMaterializer",
    "ResourceTypeRegistry",
    "default_registry",
    "register_resource",
    # Query
    "QueryService",
    "Persister",
    "FederatedQueryService",
    "InMemoryMetadataAdapter",
    # Storage
    "StorageBackend",
    "DerivativeTarget",
    "InMemoryStorageBackend",
    "DiskStorageBackend",
    # Legacy store
    "LegacyContentLocator",
    # Migration
    "MigrationTrigger",
    "MigrationDecision",
    "AlreadyMigratedPolicy",
    "MigrateFilesWorker",
    "MigrationRunResult",
    "MigrationState",
    "MigrationMetrics",
    "DerivativePathEnumerator",
    "container_for",
    "mime_type_for",
    "migration_guard",
    "is_migrating",
    "MigrationError",
    "PartialMigrationFailure",
    "UnexpectedJobError",
    "RetryConfig",
    # Jobs
    "TaskQueue",
    "AsyncioTaskQueue",
    "UnknownWorkerError",
]
