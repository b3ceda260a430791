"""Unit tests for build_lazy_migration."""

from pathlib import Path

import pytest

from lazymigrate.bootstrap import build_lazy_migration
from lazymigrate.config import MigrationSettings
from lazymigrate.jobs.queue import AsyncioTaskQueue
from lazymigrate.migration.derivatives import DerivativePathEnumerator
from lazymigrate.migration.trigger import AlreadyMigratedPolicy, MigrationDecision
from lazymigrate.query.federated import FederatedQueryService
from lazymigrate.query.in_memory import InMemoryMetadataAdapter
from lazymigrate.resources.models import FileSet
from lazymigrate.storage.in_memory import InMemoryStorageBackend
from tests.fixtures import RecordingQueue

SETTINGS = MigrationSettings(enable_tracing=False, enable_metrics=False)


class TestBuildLazyMigration:
    """Tests for the wiring helper."""

    def test_creates_queue_and_registers_worker(
        self,
        primary_adapter: InMemoryMetadataAdapter,
        legacy_adapter: InMemoryMetadataAdapter,
    ):
        """Without a queue an AsyncioTaskQueue is created with the worker registered."""
        storage = InMemoryStorageBackend(primary_adapter.persister, primary_adapter.query_service)

        stack = build_lazy_migration(
            primary=primary_adapter.query_service,
            legacy=legacy_adapter.query_service,
            storage=storage,
            settings=SETTINGS,
        )

        assert isinstance(stack.queue, AsyncioTaskQueue)
        assert stack.queue.workers == ["migrate_files"]
        assert stack.storage is storage
        assert isinstance(stack.query_service, FederatedQueryService)
        assert stack.query_service.primary is primary_adapter.query_service
        assert stack.query_service.legacy is legacy_adapter.query_service

    def test_storage_factory_receives_router(
        self,
        primary_adapter: InMemoryMetadataAdapter,
        legacy_adapter: InMemoryMetadataAdapter,
    ):
        """Storage factories are called with the federated query service."""
        received: list[FederatedQueryService] = []

        def factory(router: FederatedQueryService) -> InMemoryStorageBackend:
            received.append(router)
            return InMemoryStorageBackend(primary_adapter.persister, router)

        stack = build_lazy_migration(
            primary=primary_adapter.query_service,
            legacy=legacy_adapter.query_service,
            storage=factory,
            settings=SETTINGS,
        )

        assert received == [stack.query_service]
        assert stack.worker.storage is stack.storage
        assert stack.worker.query_service is stack.query_service

    def test_settings_reach_components(
        self,
        tmp_path: Path,
        primary_adapter: InMemoryMetadataAdapter,
        legacy_adapter: InMemoryMetadataAdapter,
    ):
        """Settings configure trigger, worker and locator."""
        settings = MigrationSettings(
            legacy_prefix="fedora:",
            fetch_scheme="https:",
            derivatives_root=tmp_path,
            already_migrated_policy=AlreadyMigratedPolicy.ALL,
            worker_id="lazy_files",
            enable_tracing=False,
            enable_metrics=False,
        )

        stack = build_lazy_migration(
            primary=primary_adapter.query_service,
            legacy=legacy_adapter.query_service,
            storage=lambda router: InMemoryStorageBackend(primary_adapter.persister, router),
            settings=settings,
        )

        assert stack.trigger.policy is AlreadyMigratedPolicy.ALL
        assert stack.trigger.worker_id == "lazy_files"
        assert stack.trigger.destination is primary_adapter.query_service
        assert stack.locator.prefix == "fedora:"
        assert stack.locator.fetch_scheme == "https:"
        assert isinstance(stack.worker.derivative_paths, DerivativePathEnumerator)
        assert stack.worker.derivative_paths.root == tmp_path
        assert stack.queue.workers == ["lazy_files"]  # type: ignore[attr-defined]
        assert stack.trigger.metrics is stack.worker.metrics

    def test_no_derivatives_root(
        self,
        primary_adapter: InMemoryMetadataAdapter,
        legacy_adapter: InMemoryMetadataAdapter,
    ):
        """Without a derivatives root the worker skips derivatives."""
        stack = build_lazy_migration(
            primary=primary_adapter.query_service,
            legacy=legacy_adapter.query_service,
            storage=lambda router: InMemoryStorageBackend(primary_adapter.persister, router),
            settings=SETTINGS,
        )

        assert stack.worker.derivative_paths is None

    async def test_attaches_trigger_to_materializers(
        self,
        primary_adapter: InMemoryMetadataAdapter,
        legacy_adapter: InMemoryMetadataAdapter,
    ):
        """Reads through either adapter consult the trigger."""
        queue = RecordingQueue()
        legacy_adapter.seed(FileSet(id="fs", file_ids=["f1"]))

        stack = build_lazy_migration(
            primary=primary_adapter.query_service,
            legacy=legacy_adapter.query_service,
            storage=lambda router: InMemoryStorageBackend(primary_adapter.persister, router),
            materializers=[primary_adapter.materializer, legacy_adapter.materializer],
            queue=queue,
            settings=SETTINGS,
        )

        resource = await stack.query_service.find_by("fs")

        assert resource.id == "fs"
        assert primary_adapter.materializer.trigger is stack.trigger
        assert legacy_adapter.materializer.trigger is stack.trigger
        assert queue.jobs == [("migrate_files", ("fs",))]
        assert stack.metrics.snapshot().decisions == {MigrationDecision.ENQUEUED.value: 1}

    def test_custom_queue_is_not_registered(
        self,
        primary_adapter: InMemoryMetadataAdapter,
        legacy_adapter: InMemoryMetadataAdapter,
    ):
        """Foreign queues are left for the caller to wire."""
        queue = RecordingQueue()

        stack = build_lazy_migration(
            primary=primary_adapter.query_service,
            legacy=legacy_adapter.query_service,
            storage=lambda router: InMemoryStorageBackend(primary_adapter.persister, router),
            queue=queue,
            settings=SETTINGS,
        )

        assert stack.queue is queue


@pytest.mark.parametrize("policy", list(AlreadyMigratedPolicy))
def test_policy_passthrough(
    policy: AlreadyMigratedPolicy,
    primary_adapter: InMemoryMetadataAdapter,
    legacy_adapter: InMemoryMetadataAdapter,
):
    """Either policy can be configured."""
    stack = build_lazy_migration(
        primary=primary_adapter.query_service,
        legacy=legacy_adapter.query_service,
        storage=lambda router: InMemoryStorageBackend(primary_adapter.persister, router),
        settings=MigrationSettings(
            already_migrated_policy=policy, enable_tracing=False, enable_metrics=False
        ),
    )
    assert stack.trigger.policy is policy
