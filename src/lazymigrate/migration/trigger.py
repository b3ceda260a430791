"""
MigrationTrigger - decides, per materialized resource, whether to migrate.

The trigger runs on every read, so it has to be cheap and must not flood
the job queue with migrations that would bail out immediately. Checks run in
a fixed order and stop at the first one that answers:

    1. IN_PROGRESS       a migration for this id runs in the current context
    2. NOT_APPLICABLE    the resource does not expose file ids
    3. ALREADY_MIGRATED  the destination store already holds its files, or
                         holds a newer copy of the resource itself
    4. ENQUEUED          a migration job was submitted

Resources read by the destination lookup itself are not evaluated.

None of the outcomes is an error. Enqueue failures propagate to the caller
(the materializer logs them and carries on).
"""

from __future__ import annotations

import logging
from contextvars import ContextVar
from enum import Enum
from typing import TYPE_CHECKING

from lazymigrate.migration.guard import is_migrating
from lazymigrate.migration.metrics import MigrationMetrics
from lazymigrate.observability import (
    ATTR_FILE_COUNT,
    ATTR_MIGRATION_DECISION,
    ATTR_RESOURCE_ID,
    ATTR_RESOURCE_TYPE,
    ATTR_WORKER_ID,
    Tracer,
    create_tracer,
)
from lazymigrate.query.interface import QueryService
from lazymigrate.resources.models import Resource, exposes_file_ids

if TYPE_CHECKING:
    from lazymigrate.jobs.queue import TaskQueue

logger = logging.getLogger(__name__)

MIGRATE_FILES_WORKER = "migrate_files"

_destination_lookup: ContextVar[bool] = ContextVar("lazymigrate_destination_lookup", default=False)


class MigrationDecision(str, Enum):
    """Outcome of evaluating a resource for migration."""

    IN_PROGRESS = "in_progress"
    NOT_APPLICABLE = "not_applicable"
    ALREADY_MIGRATED = "already_migrated"
    ENQUEUED = "enqueued"


class AlreadyMigratedPolicy(str, Enum):
    """
    When a resource counts as already migrated.

    ANY: at least one of its file ids is found in the destination store
    ALL: every one of its file ids is found in the destination store
    """

    ANY = "any"
    ALL = "all"


class MigrationTrigger:
    """
    Evaluates resources and enqueues migration jobs for unmigrated file sets.

    Args:
        destination: Query service of the store resources migrate into
        queue: Task queue migration jobs are submitted to
        policy: How many file ids must already exist in the destination
        worker_id: Worker the job is enqueued for
        metrics: Decision counters
    """

    def __init__(
        self,
        destination: QueryService,
        queue: TaskQueue,
        *,
        policy: AlreadyMigratedPolicy = AlreadyMigratedPolicy.ANY,
        worker_id: str = MIGRATE_FILES_WORKER,
        metrics: MigrationMetrics | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self.destination = destination
        self.queue = queue
        self.policy = AlreadyMigratedPolicy(policy)
        self.worker_id = worker_id
        self.metrics = metrics or MigrationMetrics(worker_id=worker_id, enable_metrics=False)

    async def evaluate(self, resource: Resource) -> MigrationDecision:
        """
        Decide what to do about ``resource`` and enqueue a job if needed.

        Raises:
            Whatever the destination lookup or the queue raise.
        """
        if _destination_lookup.get():
            return MigrationDecision.NOT_APPLICABLE

        with self._tracer.span(
            "lazymigrate.trigger.evaluate",
            {
                ATTR_RESOURCE_ID: resource.id,
                ATTR_RESOURCE_TYPE: resource.internal_resource,
            },
        ) as span:
            decision = await self._decide(resource)
            if span:
                span.set_attribute(ATTR_MIGRATION_DECISION, decision.value)
            self.metrics.record_decision(decision.value)
            return decision

    async def _decide(self, resource: Resource) -> MigrationDecision:
        if is_migrating(resource.id):
            return MigrationDecision.IN_PROGRESS

        if not exposes_file_ids(resource):
            return MigrationDecision.NOT_APPLICABLE

        file_ids: list[str] = list(resource.file_ids)  # type: ignore[attr-defined]
        if await self.already_migrated(resource.id, file_ids):
            logger.debug(f"Resource {resource.id} already migrated")
            return MigrationDecision.ALREADY_MIGRATED

        with self._tracer.span(
            "lazymigrate.trigger.enqueue",
            {
                ATTR_RESOURCE_ID: resource.id,
                ATTR_WORKER_ID: self.worker_id,
                ATTR_FILE_COUNT: len(file_ids),
            },
        ):
            await self.queue.enqueue(self.worker_id, resource.id)
        logger.info(f"Enqueued {self.worker_id} for resource {resource.id}")
        return MigrationDecision.ENQUEUED

    async def already_migrated(self, resource_id: str, file_ids: list[str]) -> bool:
        """
        True if the destination store holds the resource's files.

        The resource itself is looked up in the same query. When the
        destination holds a copy whose file ids differ, ``file_ids`` are the
        stale legacy ones and the destination copy is evaluated on its own
        reads. An empty ``file_ids`` never counts as migrated.
        """
        token = _destination_lookup.set(True)
        try:
            found = await self.destination.find_many_by_ids([resource_id, *file_ids])
        finally:
            _destination_lookup.reset(token)

        found_by_id = {resource.id: resource for resource in found}
        stored = found_by_id.pop(resource_id, None)
        if stored is not None and list(getattr(stored, "file_ids", [])) != file_ids:
            return True

        if not file_ids:
            return False
        if self.policy is AlreadyMigratedPolicy.ALL:
            return all(file_id in found_by_id for file_id in file_ids)
        return any(file_id in found_by_id for file_id in file_ids)


__all__ = [
    "MigrationDecision",
    "AlreadyMigratedPolicy",
    "MigrationTrigger",
    "MIGRATE_FILES_WORKER",
]
