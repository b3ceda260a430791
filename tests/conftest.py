"""
Shared pytest fixtures for the lazymigrate tests.

This module provides:
- Availability flags and skip markers (aiosqlite, OpenTelemetry SDK)
- Store fixtures (primary_adapter, legacy_adapter)
- Wiring fixtures (legacy_http_client, harness)
- SQLite fixtures (sqlite_engine)
- OpenTelemetry metrics fixtures (metric_reader)
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable
from typing import TYPE_CHECKING, Any

import httpx
import pytest
import pytest_asyncio

from lazymigrate.migration import metrics as migration_metrics
from lazymigrate.query.in_memory import InMemoryMetadataAdapter
from lazymigrate.testing import InMemoryMigrationHarness

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

# ============================================================================
# SQLite Availability Check
# ============================================================================

AIOSQLITE_AVAILABLE = False
try:
    import aiosqlite  # noqa: F401

    AIOSQLITE_AVAILABLE = True
except ImportError:
    pass


# ============================================================================
# OpenTelemetry Metrics Availability Check
# ============================================================================

OTEL_METRICS_AVAILABLE = False
try:
    from opentelemetry.sdk.metrics import MeterProvider
    from opentelemetry.sdk.metrics.export import InMemoryMetricReader

    OTEL_METRICS_AVAILABLE = True
except ImportError:
    MeterProvider = None  # type: ignore[assignment, misc]
    InMemoryMetricReader = None  # type: ignore[assignment, misc]


# ============================================================================
# Pytest Configuration
# ============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers for tests."""
    config.addinivalue_line("markers", "sqlite: marks tests that require SQLite (aiosqlite)")
    config.addinivalue_line("markers", "integration: marks tests that wire several components")


skip_if_no_aiosqlite = pytest.mark.skipif(not AIOSQLITE_AVAILABLE, reason="aiosqlite not installed")

skip_if_no_otel_metrics = pytest.mark.skipif(
    not OTEL_METRICS_AVAILABLE, reason="opentelemetry-sdk not installed"
)


# ============================================================================
# Store Fixtures
# ============================================================================


@pytest.fixture
def primary_adapter() -> InMemoryMetadataAdapter:
    """In-memory adapter playing the primary store."""
    return InMemoryMetadataAdapter(name="primary", enable_tracing=False)


@pytest.fixture
def legacy_adapter() -> InMemoryMetadataAdapter:
    """In-memory adapter playing the legacy store."""
    return InMemoryMetadataAdapter(name="legacy", enable_tracing=False)


# ============================================================================
# Legacy Content Fixtures
# ============================================================================


@pytest.fixture
def legacy_content() -> dict[str, bytes]:
    """Bytes served by ``legacy_http_client``, keyed by URL."""
    return {}


@pytest_asyncio.fixture
async def legacy_http_client(
    legacy_content: dict[str, bytes],
) -> AsyncGenerator[httpx.AsyncClient, None]:
    """
    httpx client serving ``legacy_content``.

    Unknown URLs answer 404.
    """

    def serve(request: httpx.Request) -> httpx.Response:
        content = legacy_content.get(str(request.url))
        if content is None:
            return httpx.Response(404)
        return httpx.Response(200, content=content)

    async with httpx.AsyncClient(transport=httpx.MockTransport(serve)) as client:
        yield client


@pytest_asyncio.fixture
async def harness(tmp_path: Any) -> AsyncGenerator[InMemoryMigrationHarness, None]:
    """In-memory migration stack with derivatives under ``tmp_path``."""
    harness = InMemoryMigrationHarness(derivatives_root=tmp_path / "derivatives")
    yield harness
    await harness.close()


# ============================================================================
# SQLite Fixtures
# ============================================================================


@pytest_asyncio.fixture
async def sqlite_engine() -> AsyncGenerator[AsyncEngine, None]:
    """
    In-memory SQLite engine with the metadata schema created.

    A StaticPool keeps the single in-memory database alive across
    connections.
    """
    if not AIOSQLITE_AVAILABLE:
        pytest.skip("aiosqlite not installed")

    from sqlalchemy.ext.asyncio import create_async_engine
    from sqlalchemy.pool import StaticPool

    from lazymigrate.query.sql import create_schema

    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    await create_schema(engine)
    yield engine
    await engine.dispose()


# ============================================================================
# OpenTelemetry Metrics Fixtures
# ============================================================================


@pytest.fixture
def metric_reader() -> Any:
    """
    Provide an InMemoryMetricReader wired into the migration metrics.

    The migration module's cached meter is replaced by one from a private
    MeterProvider, and reset afterwards.

    Yields:
        InMemoryMetricReader: Reader for inspecting collected metrics.
    """
    if not OTEL_METRICS_AVAILABLE:
        pytest.skip("opentelemetry-sdk not installed")

    reader = InMemoryMetricReader()
    provider = MeterProvider(metric_readers=[reader])
    migration_metrics._meter = provider.get_meter("lazymigrate.migration")

    yield reader

    migration_metrics.reset_meter()
    provider.shutdown()


@pytest.fixture
def collect_points(metric_reader: Any) -> Callable[[str], list[Any]]:
    """Return a function listing the data points recorded for a metric name."""

    def collect(name: str) -> list[Any]:
        data = metric_reader.get_metrics_data()
        points: list[Any] = []
        if data is None:
            return points
        for resource_metrics in data.resource_metrics:
            for scope_metrics in resource_metrics.scope_metrics:
                for metric in scope_metrics.metrics:
                    if metric.name == name:
                        points.extend(metric.data.data_points)
        return points

    return collect
