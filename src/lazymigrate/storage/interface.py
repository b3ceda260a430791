"""
Destination storage backend protocol.

The destination backend holds binary content once it has left the legacy
store. Storing bytes also records a FileMetadata resource for them and
attaches it to the owning file set, which is why a derivative persist can
add file ids a caller's in-memory copy of the file set does not know about.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Protocol, runtime_checkable

from lazymigrate.resources.models import Resource, StoredFile, Use, User


@dataclass(frozen=True)
class DerivativeTarget:
    """
    Where a derivative belongs.

    Attributes:
        resource_id: The file set the derivative was generated for
        path: Local path of the derivative file (its name is kept as the
            stored file's original filename)
    """

    resource_id: str
    path: Path


@runtime_checkable
class StorageBackend(Protocol):
    """Protocol for destination storage backends."""

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
        """
        Store ``content`` as a new file of ``resource``.

        The new file id is appended to ``resource.file_ids`` and the resource
        is persisted, so any in-memory change the caller made to it (such as
        dropping a superseded file id) is saved along with the new id.

        Args:
            resource: Owning file set
            content: Readable binary stream positioned at the start
            filename: Original filename to record
            use_tags: Use tags for the stored file
            owner: Depositing user
            content_type: MIME type of the content
            skip_derivatives: If True, do not schedule derivative generation
        """
        ...

    async def persist_derivative(
        self,
        content: BinaryIO,
        container_use: Use,
        content_type: str,
        target_locator: DerivativeTarget,
    ) -> StoredFile:
        """
        Store a derivative for the file set named by ``target_locator``.

        Persisting the same derivative twice replaces the stored content
        rather than attaching a second file.
        """
        ...


__all__ = [
    "DerivativeTarget",
    "StorageBackend",
]
