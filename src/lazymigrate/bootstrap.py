"""
Wiring for the lazy migration stack.

Every component takes its collaborators explicitly; this module only saves
callers from assembling them by hand. Nothing is looked up globally.

Example:
    >>> primary = SQLAlchemyMetadataAdapter(engine, name="primary")
    >>> legacy = InMemoryMetadataAdapter(name="legacy")
    >>> stack = build_lazy_migration(
    ...     primary=primary.query_service,
    ...     legacy=legacy.query_service,
    ...     storage=lambda router: DiskStorageBackend(files_root, primary.persister, router),
    ...     materializers=[primary.materializer, legacy.materializer],
    ...     settings=MigrationSettings(derivatives_root=derivatives_root),
    ... )
    >>> resource = await stack.query_service.find_by("fs-1")  # may enqueue a migration
    >>> await stack.queue.await_all()
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass

import httpx

from lazymigrate.config import MigrationSettings
from lazymigrate.jobs.queue import AsyncioTaskQueue, TaskQueue
from lazymigrate.legacy.locator import LegacyContentLocator
from lazymigrate.migration.derivatives import DerivativePathEnumerator
from lazymigrate.migration.metrics import MigrationMetrics
from lazymigrate.migration.trigger import MigrationTrigger
from lazymigrate.migration.worker import (
    MigrateFilesWorker,
    UserResolver,
    default_user_resolver,
)
from lazymigrate.observability import Tracer
from lazymigrate.query.federated import FederatedQueryService
from lazymigrate.query.interface import QueryService
from lazymigrate.resources.materializer import ResourceMaterializer
from lazymigrate.storage.interface import StorageBackend

logger = logging.getLogger(__name__)

StorageFactory = Callable[[FederatedQueryService], StorageBackend]


@dataclass
class LazyMigrationStack:
    """The assembled components; use ``query_service`` for all reads."""

    query_service: FederatedQueryService
    trigger: MigrationTrigger
    worker: MigrateFilesWorker
    queue: TaskQueue
    locator: LegacyContentLocator
    storage: StorageBackend
    metrics: MigrationMetrics
    settings: MigrationSettings


def build_lazy_migration(
    *,
    primary: QueryService,
    legacy: QueryService,
    storage: StorageBackend | StorageFactory,
    materializers: Sequence[ResourceMaterializer] = (),
    queue: TaskQueue | None = None,
    settings: MigrationSettings | None = None,
    http_client: httpx.AsyncClient | None = None,
    user_resolver: UserResolver = default_user_resolver,
    tracer: Tracer | None = None,
) -> LazyMigrationStack:
    """
    Assemble router, trigger, worker and queue.

    Args:
        primary: Query service of the store resources migrate into
        legacy: Query service of the store being migrated away from
        storage: Destination storage backend, or a factory receiving the
            federated query service (storage backends must find file sets
            that still only exist in the legacy store)
        materializers: Materializers the trigger is attached to; usually
            those of both metadata adapters
        queue: Task queue; an AsyncioTaskQueue is created when omitted.
            AsyncioTaskQueues get the worker registered automatically.
        settings: Migration settings (defaults when omitted)
        http_client: Shared client for legacy-store fetches
        user_resolver: Resolves upload owners from depositor keys
        tracer: Tracer shared by every component
    """
    settings = settings or MigrationSettings()
    enable_tracing = settings.enable_tracing

    if queue is None:
        queue = AsyncioTaskQueue(
            retry_config=settings.retry_config,
            max_concurrency=settings.max_concurrent_jobs,
            tracer=tracer,
            enable_tracing=enable_tracing,
        )

    router = FederatedQueryService(
        primary,
        legacy,
        tracer=tracer,
        enable_tracing=enable_tracing,
    )
    backend = storage if isinstance(storage, StorageBackend) else storage(router)

    locator = LegacyContentLocator(
        settings.legacy_prefix,
        settings.fetch_scheme,
        client=http_client,
        timeout=settings.fetch_timeout,
        chunk_size=settings.fetch_chunk_size,
        tracer=tracer,
        enable_tracing=enable_tracing,
    )
    metrics = MigrationMetrics(
        worker_id=settings.worker_id,
        enable_metrics=settings.enable_metrics,
    )
    derivative_paths = (
        DerivativePathEnumerator(settings.derivatives_root)
        if settings.derivatives_root is not None
        else None
    )

    worker = MigrateFilesWorker(
        router,
        backend,
        locator,
        derivative_paths,
        user_resolver=user_resolver,
        worker_id=settings.worker_id,
        metrics=metrics,
        tracer=tracer,
        enable_tracing=enable_tracing,
    )
    trigger = MigrationTrigger(
        primary,
        queue,
        policy=settings.already_migrated_policy,
        worker_id=settings.worker_id,
        metrics=metrics,
        tracer=tracer,
        enable_tracing=enable_tracing,
    )

    if isinstance(queue, AsyncioTaskQueue):
        queue.register(settings.worker_id, worker.perform)
    for materializer in materializers:
        materializer.attach_trigger(trigger)

    logger.info(
        "Lazy migration configured: worker=%s policy=%s derivatives=%s",
        settings.worker_id,
        settings.already_migrated_policy.value,
        settings.derivatives_root,
    )
    return LazyMigrationStack(
        query_service=router,
        trigger=trigger,
        worker=worker,
        queue=queue,
        locator=locator,
        storage=backend,
        metrics=metrics,
        settings=settings,
    )


__all__ = [
    "LazyMigrationStack",
    "StorageFactory",
    "build_lazy_migration",
]
