"""
Task queue protocol and an asyncio implementation.

The migration trigger hands work to a TaskQueue by worker id and plain
arguments. Queues deliver at least once, in no particular order, and do not
deduplicate; workers must be idempotent.

AsyncioTaskQueue runs jobs as fire-and-forget asyncio tasks in the current
process, retrying failures with exponential backoff:

    >>> queue = AsyncioTaskQueue()
    >>> queue.register("migrate_files", worker.perform)
    >>> await queue.enqueue("migrate_files", "fs-1")   # returns immediately
    >>> await queue.await_all()                         # e.g. during shutdown

Each job runs in a fresh contextvars.Context, so context-scoped state of
the enqueuing request (such as migration guards) never leaks into the job.
"""

from __future__ import annotations

import asyncio
import contextvars
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Protocol, runtime_checkable
from uuid import UUID, uuid4

from lazymigrate.migration.exceptions import (
    DEFAULT_JOB_RETRY_CONFIG,
    RetryConfig,
    classify_exception,
)
from lazymigrate.observability import (
    ATTR_RETRY_COUNT,
    ATTR_WORKER_ID,
    Tracer,
    create_tracer,
)

logger = logging.getLogger(__name__)

JobHandler = Callable[..., Awaitable[Any]]


class UnknownWorkerError(LookupError):
    """Raised when enqueueing for a worker id nobody registered."""

    def __init__(self, worker_id: str, available: list[str]) -> None:
        self.worker_id = worker_id
        self.available = available
        names = ", ".join(sorted(available)) if available else "none"
        super().__init__(f"Unknown worker '{worker_id}'. Registered workers: {names}")


@runtime_checkable
class TaskQueue(Protocol):
    """Protocol for background job queues."""

    async def enqueue(self, worker_id: str, *args: Any) -> None:
        """
        Submit a job without waiting for it to run.

        Raises:
            UnknownWorkerError: If ``worker_id`` cannot be dispatched
        """
        ...


@dataclass
class Job:
    """A queued invocation of a registered worker."""

    worker_id: str
    args: tuple[Any, ...]
    id: UUID = field(default_factory=uuid4)
    enqueued_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    attempts: int = 0


@dataclass(frozen=True)
class JobFailure:
    """A job that exhausted its retries or failed with a fatal error."""

    job: Job
    error: BaseException
    failed_at: datetime


class AsyncioTaskQueue:
    """
    In-process TaskQueue running jobs as asyncio tasks.

    Args:
        retry_config: Backoff policy for failed jobs
        max_concurrency: Maximum jobs running at once (None = unbounded)
        max_failure_history: Number of dead jobs kept for inspection
    """

    def __init__(
        self,
        *,
        retry_config: RetryConfig = DEFAULT_JOB_RETRY_CONFIG,
        max_concurrency: int | None = None,
        max_failure_history: int = 1000,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        if max_concurrency is not None and max_concurrency < 1:
            raise ValueError(f"max_concurrency must be positive, got {max_concurrency}")
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._retry_config = retry_config
        self._semaphore = asyncio.Semaphore(max_concurrency) if max_concurrency else None
        self._max_failure_history = max_failure_history
        self._handlers: dict[str, JobHandler] = {}
        self._tasks: set[asyncio.Task[None]] = set()
        self._failures: list[JobFailure] = []
        self._completed = 0
        self._enqueued = 0

    # =========================================================================
    # Worker Registry
    # =========================================================================

    def register(self, worker_id: str, handler: JobHandler) -> None:
        """Register the coroutine function that runs jobs for ``worker_id``."""
        self._handlers[worker_id] = handler
        logger.debug(f"Registered worker: {worker_id}")

    def unregister(self, worker_id: str) -> None:
        self._handlers.pop(worker_id, None)

    @property
    def workers(self) -> list[str]:
        return list(self._handlers)

    # =========================================================================
    # TaskQueue Protocol
    # =========================================================================

    async def enqueue(self, worker_id: str, *args: Any) -> None:
        if worker_id not in self._handlers:
            raise UnknownWorkerError(worker_id, self.workers)

        job = Job(worker_id=worker_id, args=args)
        task = asyncio.create_task(self._run(job), context=contextvars.Context())
        self._tasks.add(task)
        self._enqueued += 1
        task.add_done_callback(self._on_task_done)
        logger.debug(f"Enqueued job {job.id} for worker {worker_id} with args {args!r}")

    # =========================================================================
    # Job Execution
    # =========================================================================

    async def _run(self, job: Job) -> None:
        if self._semaphore is None:
            await self._run_with_retries(job)
        else:
            async with self._semaphore:
                await self._run_with_retries(job)

    async def _run_with_retries(self, job: Job) -> None:
        handler = self._handlers[job.worker_id]
        max_attempts = self._retry_config.max_attempts

        while True:
            attempt = job.attempts
            job.attempts += 1
            try:
                with self._tracer.span(
                    "lazymigrate.jobs.run",
                    {ATTR_WORKER_ID: job.worker_id, ATTR_RETRY_COUNT: attempt},
                ):
                    await handler(*job.args)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                classification = classify_exception(e)
                if not classification.recoverability.should_retry or job.attempts >= max_attempts:
                    logger.log(
                        classification.severity.log_level,
                        f"Job {job.id} ({job.worker_id}) failed after {job.attempts} "
                        f"attempt(s) [{classification.error_code}]: {e}",
                        exc_info=e,
                    )
                    self._record_failure(job, e)
                    return

                delay_ms = self._retry_config.get_delay_ms(attempt)
                logger.warning(
                    f"Job {job.id} ({job.worker_id}) attempt {job.attempts}/{max_attempts} "
                    f"failed: {e}; retrying in {delay_ms:.0f}ms"
                )
                await asyncio.sleep(delay_ms / 1000)
            else:
                self._completed += 1
                return

    def _record_failure(self, job: Job, error: BaseException) -> None:
        self._failures.append(JobFailure(job=job, error=error, failed_at=datetime.now(UTC)))
        if len(self._failures) > self._max_failure_history:
            self._failures = self._failures[-self._max_failure_history :]

    def _on_task_done(self, task: asyncio.Task[None]) -> None:
        self._tasks.discard(task)
        # _run_with_retries handles job errors; anything here is a queue bug.
        if not task.cancelled() and task.exception() is not None:
            logger.error("Task queue runner crashed", exc_info=task.exception())

    # =========================================================================
    # Monitoring and Lifecycle
    # =========================================================================

    def _pending(self) -> list[asyncio.Task[None]]:
        return [task for task in self._tasks if not task.done()]

    @property
    def pending_count(self) -> int:
        return len(self._pending())

    @property
    def completed_count(self) -> int:
        return self._completed

    @property
    def failures(self) -> list[JobFailure]:
        return list(self._failures)

    async def await_all(self, timeout: float | None = None) -> int:
        """
        Wait for all pending jobs, including retries, to finish.

        Jobs still running after ``timeout`` seconds are cancelled.

        Returns:
            Number of jobs that were awaited
        """
        enqueued_before = self._enqueued
        awaited = len(self._pending())
        # Jobs may enqueue further jobs; keep draining until quiet.
        while batch := self._pending():
            _, unfinished = await asyncio.wait(batch, timeout=timeout)
            if not unfinished:
                continue
            logger.warning(
                f"Cancelling {len(unfinished)} job(s) still running after {timeout}s",
                extra={"remaining_jobs": len(unfinished), "timeout": timeout},
            )
            for task in unfinished:
                task.cancel()
            await asyncio.gather(*unfinished, return_exceptions=True)
            break
        return awaited + self._enqueued - enqueued_before

    def cancel_all(self) -> int:
        """Cancel every pending job without waiting; returns how many were cancelled."""
        batch = self._pending()
        for task in batch:
            task.cancel()
        return len(batch)

    def __repr__(self) -> str:
        return f"AsyncioTaskQueue(workers={self.workers}, pending={self.pending_count})"


__all__ = [
    "TaskQueue",
    "AsyncioTaskQueue",
    "Job",
    "JobFailure",
    "JobHandler",
    "UnknownWorkerError",
]
