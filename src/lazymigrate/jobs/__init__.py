"""Background job queues."""

from lazymigrate.jobs.queue import (
    AsyncioTaskQueue,
    Job,
    JobFailure,
    JobHandler,
    TaskQueue,
    UnknownWorkerError,
)

__all__ = [
    "TaskQueue",
    "AsyncioTaskQueue",
    "Job",
    "JobFailure",
    "JobHandler",
    "UnknownWorkerError",
]
