"""
Standard span and metric attributes for lazymigrate.

Attribute constants shared by every component so spans and metric labels
stay consistent. Database attributes follow OpenTelemetry semantic
conventions.
"""

# =============================================================================
# Resource Attributes
# =============================================================================

ATTR_RESOURCE_ID = "lazymigrate.resource.id"
"""Identifier of the resource being read or migrated."""

ATTR_RESOURCE_TYPE = "lazymigrate.resource.type"
"""Type tag of the resource (e.g., 'FileSet', 'Work')."""

ATTR_RESOURCE_COUNT = "lazymigrate.resource.count"
"""Number of resources requested or returned (integer)."""

ATTR_ALTERNATE_ID = "lazymigrate.resource.alternate_id"
"""Alternate identifier used for a lookup."""

ATTR_REFERENCE_PROPERTY = "lazymigrate.reference.property"
"""Property name traversed by an inverse-reference query."""

# =============================================================================
# Routing Attributes
# =============================================================================

ATTR_BACKEND = "lazymigrate.backend"
"""Which backend answered a lookup ('primary' or 'legacy')."""

ATTR_PRIMARY_COUNT = "lazymigrate.router.primary_count"
"""Resources contributed by the primary backend (integer)."""

ATTR_LEGACY_COUNT = "lazymigrate.router.legacy_count"
"""Legacy-only resources contributed after de-duplication (integer)."""

# =============================================================================
# Migration Attributes
# =============================================================================

ATTR_MIGRATION_DECISION = "lazymigrate.migration.decision"
"""Outcome of the migration trigger."""

ATTR_MIGRATION_STATE = "lazymigrate.migration.state"
"""Final state of a worker run."""

ATTR_DERIVATIVE_COUNT = "lazymigrate.migration.derivative_count"
"""Derivatives persisted by a worker run (integer)."""

ATTR_FILE_COUNT = "lazymigrate.migration.file_count"
"""Files uploaded by a worker run (integer)."""

ATTR_FILE_IDENTIFIER = "lazymigrate.file.identifier"
"""Storage identifier of a file."""

ATTR_USE = "lazymigrate.file.use"
"""Use tag of a stored file."""

ATTR_WORKER_ID = "lazymigrate.job.worker_id"
"""Registered worker id of a queued job."""

ATTR_RETRY_COUNT = "lazymigrate.job.retry_count"
"""Retry attempt number (integer)."""

# =============================================================================
# Database Attributes (OpenTelemetry semantic conventions)
# =============================================================================

ATTR_DB_SYSTEM = "db.system"
"""Database system identifier (e.g., 'postgresql', 'sqlite')."""

ATTR_DB_OPERATION = "db.operation"
"""Database operation name."""

__all__ = [
    "ATTR_RESOURCE_ID",
    "ATTR_RESOURCE_TYPE",
    "ATTR_RESOURCE_COUNT",
    "ATTR_ALTERNATE_ID",
    "ATTR_REFERENCE_PROPERTY",
    "ATTR_BACKEND",
    "ATTR_PRIMARY_COUNT",
    "ATTR_LEGACY_COUNT",
    "ATTR_MIGRATION_DECISION",
    "ATTR_MIGRATION_STATE",
    "ATTR_DERIVATIVE_COUNT",
    "ATTR_FILE_COUNT",
    "ATTR_FILE_IDENTIFIER",
    "ATTR_USE",
    "ATTR_WORKER_ID",
    "ATTR_RETRY_COUNT",
    "ATTR_DB_SYSTEM",
    "ATTR_DB_OPERATION",
]
