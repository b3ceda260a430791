"""
MigrateFilesWorker - moves one file set out of the legacy store.

A run goes through these states:

    idle -> guarded -> migrating_derivatives -> migrating_files -> done
                                                                -> failed

1. Derivatives: every derivative found on disk for the resource is
   classified into a Use and persisted to the destination storage backend.
2. Re-fetch: derivative persistence attaches new file ids to the stored
   resource, so it is loaded again through the query service.
3. Files: every file still owned by the legacy store is streamed into a
   temporary file and uploaded to the destination backend, without
   derivative generation. Its legacy id is removed from the resource.

Each derivative and each file is isolated: one failure does not stop its
siblings, but the run is reported as failed afterwards so the job framework
retries it. Runs are idempotent. Derivatives already persisted are
overwritten in place and files no longer owned by the legacy store are
skipped.

The whole run executes under a migration guard, so every read of the
resource during the run answers "in progress" to the trigger instead of
enqueueing the same migration again. The guard is cleared before any
exception leaves ``perform``.
"""

from __future__ import annotations

import asyncio
import logging
import tempfile
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from lazymigrate.legacy.locator import LegacyContentLocator
from lazymigrate.migration.derivatives import (
    DerivativePathEnumerator,
    container_for,
    mime_type_for,
)
from lazymigrate.migration.exceptions import (
    FailedItem,
    MigrationError,
    PartialMigrationFailure,
    UnexpectedJobError,
)
from lazymigrate.migration.guard import migration_guard
from lazymigrate.migration.metrics import MigrationMetrics
from lazymigrate.migration.trigger import MIGRATE_FILES_WORKER
from lazymigrate.observability import (
    ATTR_DERIVATIVE_COUNT,
    ATTR_FILE_COUNT,
    ATTR_FILE_IDENTIFIER,
    ATTR_MIGRATION_STATE,
    ATTR_RESOURCE_ID,
    ATTR_USE,
    Tracer,
    create_tracer,
)
from lazymigrate.query.interface import QueryService
from lazymigrate.resources.models import (
    FileMetadata,
    Resource,
    StoredFile,
    User,
    exposes_file_ids,
    filter_uses,
)
from lazymigrate.storage.interface import DerivativeTarget, StorageBackend

logger = logging.getLogger(__name__)

UserResolver = Callable[[str | None], Awaitable[User | None]]


async def default_user_resolver(user_key: str | None) -> User | None:
    """Build a User from a depositor key without any lookup."""
    if not user_key:
        return None
    return User(user_key=user_key)


class MigrationState(str, Enum):
    """Where a worker run currently is."""

    IDLE = "idle"
    GUARDED = "guarded"
    MIGRATING_DERIVATIVES = "migrating_derivatives"
    MIGRATING_FILES = "migrating_files"
    DONE = "done"
    FAILED = "failed"


@dataclass
class MigrationRunResult:
    """
    Outcome of one worker run.

    Attributes:
        resource_id: Resource that was migrated
        state: Final state (DONE or FAILED)
        derivatives: Derivatives persisted to the destination backend
        files: Files uploaded to the destination backend
        skipped_file_ids: Files left alone because the legacy store no longer owns them
        failures: Derivatives or files that failed
        duration_ms: Wall-clock time of the run in milliseconds
    """

    resource_id: str
    state: MigrationState = MigrationState.IDLE
    derivatives: list[StoredFile] = field(default_factory=list)
    files: list[StoredFile] = field(default_factory=list)
    skipped_file_ids: list[str] = field(default_factory=list)
    failures: list[FailedItem] = field(default_factory=list)
    duration_ms: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.state is MigrationState.DONE


class MigrateFilesWorker:
    """
    Migrates the derivatives and legacy files of one resource per run.

    Args:
        query_service: Federated query service (destination first, then legacy)
        storage: Destination storage backend
        locator: Recognizes and fetches legacy-store content
        derivative_paths: Finds derivative files on disk (None: no derivatives)
        user_resolver: Resolves the owning user from a depositor key
        metrics: Migration counters and timings

    Example:
        >>> worker = MigrateFilesWorker(router, storage, locator, DerivativePathEnumerator(root))
        >>> queue.register(worker.worker_id, worker.perform)
    """

    def __init__(
        self,
        query_service: QueryService,
        storage: StorageBackend,
        locator: LegacyContentLocator,
        derivative_paths: DerivativePathEnumerator | None = None,
        *,
        user_resolver: UserResolver = default_user_resolver,
        worker_id: str = MIGRATE_FILES_WORKER,
        metrics: MigrationMetrics | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self.query_service = query_service
        self.storage = storage
        self.locator = locator
        self.derivative_paths = derivative_paths
        self.user_resolver = user_resolver
        self.worker_id = worker_id
        self.metrics = metrics or MigrationMetrics(worker_id=worker_id, enable_metrics=False)

    async def perform(self, resource_id: str) -> MigrationRunResult:
        """
        Migrate ``resource_id``; the entry point registered with the task queue.

        Raises:
            PartialMigrationFailure: Some derivatives or files failed
            UnexpectedJobError: Anything else went wrong (e.g. the resource
                could not be loaded)
        """
        result = await self.run(resource_id)
        if result.failures:
            raise PartialMigrationFailure(resource_id, result.failures)
        return result

    async def run(self, resource_id: str) -> MigrationRunResult:
        """
        Migrate ``resource_id`` and report per-item failures in the result.

        Unlike ``perform``, partial failures do not raise.
        """
        result = MigrationRunResult(resource_id=resource_id)
        start = time.perf_counter()
        try:
            await self._run_traced(resource_id, result)
        finally:
            result.duration_ms = (time.perf_counter() - start) * 1000
            self.metrics.record_job(result.duration_ms, "success" if result.succeeded else "failed")

        if result.failures:
            logger.warning(
                f"Migration of {resource_id} finished with {len(result.failures)} failure(s): "
                f"{len(result.derivatives)} derivative(s), {len(result.files)} file(s) migrated"
            )
        else:
            logger.info(
                f"Migrated {resource_id}: {len(result.derivatives)} derivative(s), "
                f"{len(result.files)} file(s)"
            )
        return result

    async def _run_traced(self, resource_id: str, result: MigrationRunResult) -> None:
        with self._tracer.span(
            "lazymigrate.worker.perform",
            {ATTR_RESOURCE_ID: resource_id},
        ) as span:
            try:
                await self._run_guarded(resource_id, result)
            except MigrationError:
                result.state = MigrationState.FAILED
                raise
            except Exception as e:
                result.state = MigrationState.FAILED
                logger.exception(f"Migration of {resource_id} failed unexpectedly")
                raise UnexpectedJobError(resource_id, e) from e

            result.state = MigrationState.FAILED if result.failures else MigrationState.DONE
            if span:
                span.set_attribute(ATTR_MIGRATION_STATE, result.state.value)
                span.set_attribute(ATTR_DERIVATIVE_COUNT, len(result.derivatives))
                span.set_attribute(ATTR_FILE_COUNT, len(result.files))

    async def _run_guarded(self, resource_id: str, result: MigrationRunResult) -> None:
        with migration_guard(resource_id):
            result.state = MigrationState.GUARDED
            resource = await self.query_service.find_by(resource_id)

            result.state = MigrationState.MIGRATING_DERIVATIVES
            await self._migrate_derivatives(resource, result)

            # Derivative persistence may have attached new file ids.
            resource = await self.query_service.find_by(resource_id)

            result.state = MigrationState.MIGRATING_FILES
            await self._migrate_files(resource, result)

    # =========================================================================
    # Step 1: derivatives
    # =========================================================================

    async def _migrate_derivatives(self, resource: Resource, result: MigrationRunResult) -> None:
        if self.derivative_paths is None:
            return

        paths = await asyncio.to_thread(self.derivative_paths.paths_for, resource)
        for path in paths:
            try:
                stored = await self._migrate_derivative(resource, path)
            except Exception as e:
                logger.warning(
                    f"Failed to migrate derivative {path} for {resource.id}: {e}",
                    exc_info=True,
                )
                self.metrics.record_item_failed("derivative", type(e).__name__)
                result.failures.append(FailedItem(kind="derivative", reference=str(path), error=e))
            else:
                result.derivatives.append(stored)

    async def _migrate_derivative(self, resource: Resource, path: Path) -> StoredFile:
        use = container_for(path)
        content_type = mime_type_for(path)
        with self._tracer.span(
            "lazymigrate.worker.migrate_derivative",
            {ATTR_RESOURCE_ID: resource.id, ATTR_USE: use.value},
        ):
            with await asyncio.to_thread(path.open, "rb") as content:
                stored = await self.storage.persist_derivative(
                    content,
                    use,
                    content_type,
                    DerivativeTarget(resource_id=resource.id, path=path),
                )
        self.metrics.record_derivative_migrated(use.value)
        logger.debug(f"Persisted derivative {path.name} of {resource.id} as {use.value}")
        return stored

    # =========================================================================
    # Step 3: primary files
    # =========================================================================

    async def _migrate_files(self, resource: Resource, result: MigrationRunResult) -> None:
        if not exposes_file_ids(resource):
            return

        files = await self.query_service.find_many_file_metadata_by_ids(
            list(resource.file_ids)  # type: ignore[attr-defined]
        )
        owner = await self.user_resolver(resource.depositor)

        for file in files:
            if not self.locator.is_legacy(file.file_identifier):
                result.skipped_file_ids.append(file.id)
                continue
            try:
                stored = await self._migrate_file(resource, file, owner)
            except Exception as e:
                logger.warning(
                    f"Failed to migrate file {file.id} ({file.file_identifier}) "
                    f"for {resource.id}: {e}",
                    exc_info=True,
                )
                self.metrics.record_item_failed("file", type(e).__name__)
                result.failures.append(FailedItem(kind="file", reference=file.id, error=e))
            else:
                result.files.append(stored)

    async def _migrate_file(
        self,
        resource: Resource,
        file: FileMetadata,
        owner: User | None,
    ) -> StoredFile:
        file_ids: list[str] = resource.file_ids  # type: ignore[attr-defined]
        position = file_ids.index(file.id) if file.id in file_ids else None
        if position is not None:
            # The upload persists the resource, so drop the legacy id first.
            del file_ids[position]

        use_tags = filter_uses(file.use)
        with self._tracer.span(
            "lazymigrate.worker.migrate_file",
            {ATTR_RESOURCE_ID: resource.id, ATTR_FILE_IDENTIFIER: file.file_identifier},
        ):
            try:
                with await asyncio.to_thread(tempfile.TemporaryFile) as buffer:
                    size = await self.locator.copy_to(file.file_identifier, buffer)
                    buffer.seek(0)
                    stored = await self.storage.upload(
                        resource,
                        buffer,
                        filename=resource.label or file.original_filename,
                        use_tags=use_tags,
                        owner=owner,
                        content_type=file.mime_type,
                        skip_derivatives=True,
                    )
            except BaseException:
                if position is not None and file.id not in file_ids:
                    file_ids.insert(position, file.id)
                raise

        self.metrics.record_file_migrated(",".join(stored.use))
        logger.debug(f"Uploaded {size} byte(s) of {file.file_identifier} as {stored.file_identifier}")
        return stored


__all__ = [
    "MigrateFilesWorker",
    "MigrationRunResult",
    "MigrationState",
    "UserResolver",
    "default_user_resolver",
]
