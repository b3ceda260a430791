"""
Observability utilities for lazymigrate.

Tracing is composition based: components accept an optional ``tracer`` and
fall back to :func:`create_tracer`, which yields a ``NullTracer`` when
OpenTelemetry is not installed or tracing is disabled.
"""

from lazymigrate.observability.attributes import (
    ATTR_ALTERNATE_ID,
    ATTR_BACKEND,
    ATTR_DB_OPERATION,
    ATTR_DB_SYSTEM,
    ATTR_DERIVATIVE_COUNT,
    ATTR_FILE_COUNT,
    ATTR_FILE_IDENTIFIER,
    ATTR_LEGACY_COUNT,
    ATTR_MIGRATION_DECISION,
    ATTR_MIGRATION_STATE,
    ATTR_PRIMARY_COUNT,
    ATTR_REFERENCE_PROPERTY,
    ATTR_RESOURCE_COUNT,
    ATTR_RESOURCE_ID,
    ATTR_RESOURCE_TYPE,
    ATTR_RETRY_COUNT,
    ATTR_USE,
    ATTR_WORKER_ID,
)
from lazymigrate.observability.tracer import (
    OTEL_AVAILABLE,
    MockTracer,
    NullTracer,
    OpenTelemetryTracer,
    RecordedSpan,
    Tracer,
    create_tracer,
)

__all__ = [
    "OTEL_AVAILABLE",
    "RecordedSpan",
    "Tracer",
    "NullTracer",
    "OpenTelemetryTracer",
    "MockTracer",
    "create_tracer",
    "ATTR_ALTERNATE_ID",
    "ATTR_BACKEND",
    "ATTR_DB_OPERATION",
    "ATTR_DB_SYSTEM",
    "ATTR_DERIVATIVE_COUNT",
    "ATTR_FILE_COUNT",
    "ATTR_FILE_IDENTIFIER",
    "ATTR_LEGACY_COUNT",
    "ATTR_MIGRATION_DECISION",
    "ATTR_MIGRATION_STATE",
    "ATTR_PRIMARY_COUNT",
    "ATTR_REFERENCE_PROPERTY",
    "ATTR_RESOURCE_COUNT",
    "ATTR_RESOURCE_ID",
    "ATTR_RESOURCE_TYPE",
    "ATTR_RETRY_COUNT",
    "ATTR_USE",
    "ATTR_WORKER_ID",
]
