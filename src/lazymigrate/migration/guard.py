"""
Migration guard - marks resource ids whose migration runs in this context.

Migrating a file set reloads and re-saves it, and every one of those reads
goes back through the materializer and its migration trigger. The guard is
how the trigger recognizes that re-entrant read and answers "in progress"
instead of enqueueing the same migration again.

The guard lives in a ContextVar, so it is scoped to the current asyncio task
(or thread). Concurrent requests and unrelated migrations never see each
other's guards, and nothing is persisted.

Example:
    >>> with migration_guard("fs-1"):
    ...     assert is_migrating("fs-1")
    ...     await worker_steps()
    >>> assert not is_migrating("fs-1")
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

logger = logging.getLogger(__name__)

# Resource ids with a migration running in the current execution context
_migrations_in_progress: ContextVar[frozenset[str]] = ContextVar(
    "lazymigrate_migrations_in_progress",
    default=frozenset(),
)


def is_migrating(resource_id: str) -> bool:
    """True if a migration for ``resource_id`` runs in the current context."""
    return resource_id in _migrations_in_progress.get()


def migrations_in_progress() -> frozenset[str]:
    """All resource ids guarded in the current context."""
    return _migrations_in_progress.get()


@contextmanager
def migration_guard(resource_id: str) -> Iterator[None]:
    """
    Mark ``resource_id`` as being migrated for the duration of the block.

    The mark is removed when the block exits, whether it succeeds or raises.
    Nested guards for other ids are independent of each other.
    """
    token = _migrations_in_progress.set(_migrations_in_progress.get() | {resource_id})
    logger.debug(f"Migration guard set for {resource_id}")
    try:
        yield
    finally:
        _migrations_in_progress.reset(token)
        logger.debug(f"Migration guard cleared for {resource_id}")


__all__ = [
    "is_migrating",
    "migrations_in_progress",
    "migration_guard",
]
