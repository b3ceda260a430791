"""
Spans for lazymigrate components.

Every component takes an optional ``tracer`` argument and otherwise builds
one with :func:`create_tracer`. OpenTelemetry is optional: without it, or
with ``enable_tracing=False``, spans are no-ops.

    >>> self._tracer = tracer or create_tracer(__name__, enable_tracing)
    >>> with self._tracer.span("lazymigrate.router.find_by", {ATTR_RESOURCE_ID: rid}) as span:
    ...     resource = await lookup(rid)
    ...     if span:
    ...         span.set_attribute(ATTR_BACKEND, "primary")

``span`` yields an object with ``set_attribute`` or None, so attributes that
are only known at the end are set behind an ``if span:`` check.
"""

from __future__ import annotations

import contextlib
from collections.abc import Iterator, Mapping
from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

try:
    from opentelemetry import trace

    OTEL_AVAILABLE = True
except ImportError:
    OTEL_AVAILABLE = False
    trace = None  # type: ignore[assignment]

TRACER_VERSION = "1.0.0"


def _span_attributes(attributes: Mapping[str, Any] | None) -> dict[str, Any]:
    # OpenTelemetry rejects None attribute values.
    return {key: value for key, value in (attributes or {}).items() if value is not None}


@runtime_checkable
class Tracer(Protocol):
    """Creates spans around component operations."""

    def span(
        self,
        name: str,
        attributes: Mapping[str, Any] | None = None,
    ) -> AbstractContextManager[Any]: ...

    @property
    def enabled(self) -> bool: ...


class NullTracer:
    """Tracer that records nothing; ``span`` yields None."""

    def span(
        self,
        name: str,
        attributes: Mapping[str, Any] | None = None,
    ) -> AbstractContextManager[None]:
        return contextlib.nullcontext()

    @property
    def enabled(self) -> bool:
        return False


class OpenTelemetryTracer:
    """
    Tracer backed by an OpenTelemetry tracer of the given name.

    Exceptions leaving a span are recorded on it and mark it as failed.
    """

    def __init__(self, tracer_name: str) -> None:
        if not OTEL_AVAILABLE:
            raise ImportError("opentelemetry-api is required for OpenTelemetryTracer")
        self._tracer = trace.get_tracer(tracer_name, TRACER_VERSION)

    def span(
        self,
        name: str,
        attributes: Mapping[str, Any] | None = None,
    ) -> AbstractContextManager[Any]:
        return self._tracer.start_as_current_span(
            name,
            attributes=_span_attributes(attributes),
            record_exception=True,
            set_status_on_exception=True,
        )

    @property
    def enabled(self) -> bool:
        return True


@dataclass
class RecordedSpan:
    """A span captured by MockTracer."""

    name: str
    attributes: dict[str, Any] = field(default_factory=dict)
    error: BaseException | None = None

    def set_attribute(self, key: str, value: Any) -> None:
        self.attributes[key] = value


class MockTracer:
    """
    Tracer for tests that keeps every span in ``spans``.

    Example:
        >>> tracer = MockTracer()
        >>> router = FederatedQueryService(primary, legacy, tracer=tracer)
        >>> await router.find_by("fs-1")
        >>> tracer.find("lazymigrate.router.find_by")[0].attributes[ATTR_BACKEND]
        'primary'
    """

    def __init__(self) -> None:
        self.spans: list[RecordedSpan] = []

    @contextlib.contextmanager
    def span(
        self,
        name: str,
        attributes: Mapping[str, Any] | None = None,
    ) -> Iterator[RecordedSpan]:
        recorded = RecordedSpan(name, _span_attributes(attributes))
        self.spans.append(recorded)
        try:
            yield recorded
        except BaseException as e:
            recorded.error = e
            raise

    @property
    def enabled(self) -> bool:
        return True

    @property
    def span_names(self) -> list[str]:
        return [span.name for span in self.spans]

    def find(self, name: str) -> list[RecordedSpan]:
        """Spans with the given name, in creation order."""
        return [span for span in self.spans if span.name == name]

    def clear(self) -> None:
        self.spans.clear()


def create_tracer(name: str, enable_tracing: bool = True) -> Tracer:
    """
    Tracer for a component.

    Returns an OpenTelemetryTracer when tracing is enabled and OpenTelemetry
    is installed, otherwise a NullTracer.
    """
    if enable_tracing and OTEL_AVAILABLE:
        return OpenTelemetryTracer(name)
    return NullTracer()


__all__ = [
    "OTEL_AVAILABLE",
    "Tracer",
    "NullTracer",
    "OpenTelemetryTracer",
    "MockTracer",
    "RecordedSpan",
    "create_tracer",
]
