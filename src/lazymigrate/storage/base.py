"""
Shared behaviour for storage backends that record FileMetadata.

Subclasses only decide where bytes go (``_write``) and how to read them back
(``read``); recording metadata and attaching it to the file set is common.
"""

from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Sequence
from typing import BinaryIO

from lazymigrate.exceptions import ResourceNotFoundError
from lazymigrate.observability import (
    ATTR_FILE_IDENTIFIER,
    ATTR_RESOURCE_ID,
    ATTR_USE,
    Tracer,
    create_tracer,
)
from lazymigrate.query.interface import Persister, QueryService
from lazymigrate.resources.models import (
    FileMetadata,
    Resource,
    StoredFile,
    Use,
    User,
    exposes_file_ids,
    filter_uses,
)
from lazymigrate.storage.interface import DerivativeTarget

logger = logging.getLogger(__name__)

DerivativeScheduler = Callable[[Resource, FileMetadata], Awaitable[None]]


def _new_file_id() -> str:
    return str(uuid.uuid4())


class MetadataRecordingStorage(ABC):
    """
    Base class for storage backends writing FileMetadata through a persister.

    Args:
        persister: Persister of the store file metadata is recorded in
        query_service: Query service over the same store
        derivative_scheduler: Called after an upload unless skip_derivatives
        id_factory: Produces ids for new FileMetadata resources
    """

    def __init__(
        self,
        persister: Persister,
        query_service: QueryService,
        *,
        derivative_scheduler: DerivativeScheduler | None = None,
        id_factory: Callable[[], str] = _new_file_id,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._persister = persister
        self._query_service = query_service
        self._derivative_scheduler = derivative_scheduler
        self._id_factory = id_factory

    @abstractmethod
    async def _write(self, key: str, content: BinaryIO) -> tuple[str, int]:
        """Store bytes under ``key``; return (file_identifier, size)."""

    @abstractmethod
    async def read(self, file_identifier: str) -> bytes:
        """Return the bytes stored under ``file_identifier``."""

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
        uses = filter_uses(use_tags) or [Use.ORIGINAL_FILE]
        with self._tracer.span(
            "lazymigrate.storage.upload",
            {ATTR_RESOURCE_ID: resource.id, ATTR_USE: ",".join(u.value for u in uses)},
        ):
            file_id = self._id_factory()
            identifier, size = await self._write(f"{resource.id}/{file_id}/{filename}", content)
            metadata = FileMetadata(
                id=file_id,
                label=filename,
                depositor=owner.user_key if owner else resource.depositor,
                file_identifier=identifier,
                original_filename=filename,
                mime_type=content_type,
                use=[u.value for u in uses],
                file_set_id=resource.id,
                size=size,
            )
            await self._persister.save(metadata)

            if exposes_file_ids(resource):
                resource.file_ids.append(file_id)  # type: ignore[attr-defined]
                await self._persister.save(resource)

            logger.info(f"Stored {filename} for {resource.id} as {identifier}")

            if not skip_derivatives and self._derivative_scheduler is not None:
                await self._derivative_scheduler(resource, metadata)

            return self._stored(metadata)

    async def persist_derivative(
        self,
        content: BinaryIO,
        container_use: Use,
        content_type: str,
        target_locator: DerivativeTarget,
    ) -> StoredFile:
        filename = target_locator.path.name
        with self._tracer.span(
            "lazymigrate.storage.persist_derivative",
            {ATTR_RESOURCE_ID: target_locator.resource_id, ATTR_USE: container_use.value},
        ) as span:
            file_set = await self._query_service.find_by(target_locator.resource_id)
            if not exposes_file_ids(file_set):
                raise ResourceNotFoundError(target_locator.resource_id)

            existing = await self._find_existing(file_set, container_use, filename)
            file_id = existing.id if existing else self._id_factory()
            identifier, size = await self._write(
                f"{file_set.id}/derivatives/{file_id}/{filename}", content
            )
            if span:
                span.set_attribute(ATTR_FILE_IDENTIFIER, identifier)

            metadata = FileMetadata(
                id=file_id,
                label=filename,
                depositor=file_set.depositor,
                file_identifier=identifier,
                original_filename=filename,
                mime_type=content_type,
                use=[container_use.value],
                file_set_id=file_set.id,
                size=size,
            )
            await self._persister.save(metadata)

            if existing is None:
                file_set.file_ids.append(file_id)  # type: ignore[attr-defined]
                await self._persister.save(file_set)

            logger.debug(f"Persisted {container_use.value} derivative {filename} for {file_set.id}")
            return self._stored(metadata)

    async def _find_existing(
        self,
        file_set: Resource,
        use: Use,
        filename: str,
    ) -> FileMetadata | None:
        files = await self._query_service.find_many_file_metadata_by_ids(
            file_set.file_ids  # type: ignore[attr-defined]
        )
        for file in files:
            if use.value in file.use and file.original_filename == filename:
                return file
        return None

    @staticmethod
    def _stored(metadata: FileMetadata) -> StoredFile:
        return StoredFile(
            id=metadata.id,
            file_identifier=metadata.file_identifier,
            size=metadata.size or 0,
            use=list(metadata.use),
            mime_type=metadata.mime_type,
        )


__all__ = [
    "MetadataRecordingStorage",
    "DerivativeScheduler",
]
