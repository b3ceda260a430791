"""
Shared test doubles for the lazymigrate tests.

This module provides:
- RecordingQueue: TaskQueue that only records what was enqueued
- UnavailableQueryService: QueryService whose every call fails
- RecordingStorage: StorageBackend double recording calls
- ThreadRecordingBuffer: BytesIO remembering which threads read and wrote it
- Factories for legacy file sets and file metadata

Usage:
    from tests.fixtures import RecordingQueue, legacy_file, legacy_file_set
"""

from __future__ import annotations

import io
import threading
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, BinaryIO

from lazymigrate.exceptions import BackendUnavailableError
from lazymigrate.resources.models import (
    FileMetadata,
    FileSet,
    Resource,
    StoredFile,
    Use,
    User,
)
from lazymigrate.storage.interface import DerivativeTarget


class RecordingQueue:
    """TaskQueue that records enqueued jobs without running them."""

    def __init__(self, error: BaseException | None = None) -> None:
        self.jobs: list[tuple[str, tuple[Any, ...]]] = []
        self.error = error

    async def enqueue(self, worker_id: str, *args: Any) -> None:
        if self.error is not None:
            raise self.error
        self.jobs.append((worker_id, args))


class UnavailableQueryService:
    """QueryService standing in for a backend that cannot be reached."""

    def __init__(self, name: str = "legacy") -> None:
        self.name = name
        self.calls: list[str] = []

    def _fail(self, operation: str) -> BackendUnavailableError:
        self.calls.append(operation)
        return BackendUnavailableError(self.name, "connection refused")

    async def find_by(self, resource_id: str) -> Resource:
        raise self._fail("find_by")

    async def find_by_alternate_identifier(self, alternate_identifier: str) -> Resource:
        raise self._fail("find_by_alternate_identifier")

    async def find_many_by_ids(self, ids: Sequence[str]) -> list[Resource]:
        raise self._fail("find_many_by_ids")

    async def find_all(self) -> list[Resource]:
        raise self._fail("find_all")

    async def find_all_of_model(self, model: Any) -> list[Resource]:
        raise self._fail("find_all_of_model")

    async def find_members(self, resource: Resource) -> list[Resource]:
        raise self._fail("find_members")

    async def find_inverse_references_by(self, resource_id: str, property: str) -> list[Resource]:
        raise self._fail("find_inverse_references_by")

    async def find_many_file_metadata_by_ids(self, ids: Sequence[str]) -> list[FileMetadata]:
        raise self._fail("find_many_file_metadata_by_ids")


@dataclass
class UploadCall:
    resource_id: str
    file_ids_at_upload: list[str]
    content: bytes
    filename: str
    use_tags: list[Use | str]
    owner: User | None
    content_type: str
    skip_derivatives: bool


@dataclass
class DerivativeCall:
    content: bytes
    container_use: Use
    content_type: str
    target: DerivativeTarget


@dataclass
class RecordingStorage:
    """
    StorageBackend double recording every call.

    Uploads whose content is in ``fail_uploads_for`` and derivatives whose
    filename is in ``fail_derivatives_named`` raise OSError.
    """

    uploads: list[UploadCall] = field(default_factory=list)
    derivatives: list[DerivativeCall] = field(default_factory=list)
    fail_uploads_for: set[bytes] = field(default_factory=set)
    fail_derivatives_named: set[str] = field(default_factory=set)

    async def upload(
        self,
        resource: Resource,
        content: BinaryIO,
        filename: str,
        use_tags: Sequence[Use | str],
        owner: User | None,
        content_type: str,
        skip_derivatives: bool = False,
    ) -> StoredFile:
        data = content.read()
        if data in self.fail_uploads_for:
            raise OSError(f"disk full while storing {filename}")
        self.uploads.append(
            UploadCall(
                resource_id=resource.id,
                file_ids_at_upload=list(resource.file_ids),  # type: ignore[attr-defined]
                content=data,
                filename=filename,
                use_tags=list(use_tags),
                owner=owner,
                content_type=content_type,
                skip_derivatives=skip_derivatives,
            )
        )
        return StoredFile(
            id=f"new-{len(self.uploads)}",
            file_identifier=f"new:store/{len(self.uploads)}",
            size=len(data),
            use=[u.value if isinstance(u, Use) else u for u in use_tags],
            mime_type=content_type,
        )

    async def persist_derivative(
        self,
        content: BinaryIO,
        container_use: Use,
        content_type: str,
        target_locator: DerivativeTarget,
    ) -> StoredFile:
        if target_locator.path.name in self.fail_derivatives_named:
            raise OSError(f"cannot persist {target_locator.path.name}")
        data = content.read()
        self.derivatives.append(DerivativeCall(data, container_use, content_type, target_locator))
        return StoredFile(
            id=f"derivative-{len(self.derivatives)}",
            file_identifier=f"new:derivatives/{target_locator.path.name}",
            size=len(data),
            use=[container_use.value],
            mime_type=content_type,
        )


class ThreadRecordingBuffer(io.BytesIO):
    """BytesIO that records the ids of the threads reading and writing it."""

    def __init__(self, initial: bytes = b"") -> None:
        super().__init__(initial)
        self.threads: set[int] = set()

    def read(self, size: int | None = -1) -> bytes:
        self.threads.add(threading.get_ident())
        return super().read(size)

    def write(self, data: Any) -> int:
        self.threads.add(threading.get_ident())
        return super().write(data)


def legacy_file_set(resource_id: str = "fs1abc", *file_ids: str, **kwargs: Any) -> FileSet:
    """A file set owning ``file_ids`` (``f1``, ``f2`` by default)."""
    kwargs.setdefault("label", "scan.pdf")
    kwargs.setdefault("depositor", "depositor@example.com")
    return FileSet(id=resource_id, file_ids=list(file_ids or ("f1", "f2")), **kwargs)


def legacy_file(
    file_id: str,
    file_set_id: str = "fs1abc",
    *,
    identifier: str | None = None,
    use: Sequence[str] = ("original_file",),
    mime_type: str = "application/pdf",
) -> FileMetadata:
    """File metadata whose content is still owned by the legacy store."""
    return FileMetadata(
        id=file_id,
        file_identifier=identifier or f"legacy://legacy.example/files/{file_id}",
        original_filename=f"{file_id}.pdf",
        mime_type=mime_type,
        use=list(use),
        file_set_id=file_set_id,
    )


__all__ = [
    "RecordingQueue",
    "UnavailableQueryService",
    "RecordingStorage",
    "UploadCall",
    "DerivativeCall",
    "legacy_file_set",
    "legacy_file",
]
