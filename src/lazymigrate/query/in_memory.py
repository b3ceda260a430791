"""
In-memory metadata adapter.

Useful for testing and development, and as the stand-in for either side of
the federation in unit tests. Records are kept as RawRecords and every read
goes through the ResourceMaterializer, exactly like a real adapter, so the
migration trigger fires on reads.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from datetime import UTC, datetime

from lazymigrate.exceptions import ResourceNotFoundError
from lazymigrate.observability import (
    ATTR_ALTERNATE_ID,
    ATTR_REFERENCE_PROPERTY,
    ATTR_RESOURCE_COUNT,
    ATTR_RESOURCE_ID,
    ATTR_RESOURCE_TYPE,
    Tracer,
    create_tracer,
)
from lazymigrate.query.interface import model_tag
from lazymigrate.resources.materializer import ResourceMaterializer
from lazymigrate.resources.models import FileMetadata, RawRecord, Resource


class InMemoryMetadataAdapter:
    """
    Holds records in memory and exposes a query service and a persister.

    Example:
        >>> adapter = InMemoryMetadataAdapter(name="primary")
        >>> await adapter.persister.save(FileSet(id="fs1", file_ids=["f1"]))
        >>> resource = await adapter.query_service.find_by("fs1")

    Attributes:
        _records: Records keyed by id, in insertion order
    """

    def __init__(
        self,
        materializer: ResourceMaterializer | None = None,
        *,
        name: str = "memory",
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self.name = name
        self.materializer = materializer or ResourceMaterializer()
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._records: dict[str, RawRecord] = {}
        self._lock = asyncio.Lock()
        self.query_service = InMemoryQueryService(self)
        self.persister = InMemoryPersister(self)

    def records(self) -> list[RawRecord]:
        """Snapshot of all stored records."""
        return list(self._records.values())

    def seed(self, *resources: Resource) -> None:
        """
        Store resources directly.

        Unlike ``persister.save`` nothing is read back through the
        materializer, so seeding fixtures never fires the migration trigger.
        """
        for resource in resources:
            self._records[resource.id] = self.materializer.to_record(resource)

    def clear(self) -> None:
        """Remove every record."""
        self._records.clear()


class InMemoryQueryService:
    """QueryService over an InMemoryMetadataAdapter."""

    def __init__(self, adapter: InMemoryMetadataAdapter) -> None:
        self._adapter = adapter

    @property
    def _tracer(self) -> Tracer:
        return self._adapter._tracer

    async def _materialize(self, record: RawRecord) -> Resource:
        return await self._adapter.materializer.materialize(record)

    async def _materialize_all(self, records: Sequence[RawRecord]) -> list[Resource]:
        return [await self._materialize(record) for record in records]

    async def find_by(self, resource_id: str) -> Resource:
        with self._tracer.span(
            "lazymigrate.memory.find_by",
            {ATTR_RESOURCE_ID: resource_id},
        ):
            record = self._adapter._records.get(resource_id)
            if record is None:
                raise ResourceNotFoundError(resource_id)
            return await self._materialize(record)

    async def find_by_alternate_identifier(self, alternate_identifier: str) -> Resource:
        with self._tracer.span(
            "lazymigrate.memory.find_by_alternate_identifier",
            {ATTR_ALTERNATE_ID: alternate_identifier},
        ):
            for record in self._adapter._records.values():
                if alternate_identifier in record.attributes.get("alternate_ids", []):
                    return await self._materialize(record)
            raise ResourceNotFoundError(alternate_identifier=alternate_identifier)

    async def find_many_by_ids(self, ids: Sequence[str]) -> list[Resource]:
        with self._tracer.span(
            "lazymigrate.memory.find_many_by_ids",
            {ATTR_RESOURCE_COUNT: len(ids)},
        ):
            records = self._adapter._records
            seen: set[str] = set()
            found: list[RawRecord] = []
            for resource_id in ids:
                if resource_id in records and resource_id not in seen:
                    seen.add(resource_id)
                    found.append(records[resource_id])
            return await self._materialize_all(found)

    async def find_all(self) -> list[Resource]:
        with self._tracer.span("lazymigrate.memory.find_all"):
            return await self._materialize_all(self._adapter.records())

    async def find_all_of_model(self, model: type[Resource] | str) -> list[Resource]:
        tag = model_tag(model)
        with self._tracer.span(
            "lazymigrate.memory.find_all_of_model",
            {ATTR_RESOURCE_TYPE: tag},
        ):
            return await self._materialize_all(
                [r for r in self._adapter.records() if r.internal_resource == tag]
            )

    async def find_members(self, resource: Resource) -> list[Resource]:
        return await self.find_many_by_ids(resource.member_ids)

    async def find_inverse_references_by(
        self,
        resource_id: str,
        property: str,
    ) -> list[Resource]:
        with self._tracer.span(
            "lazymigrate.memory.find_inverse_references_by",
            {ATTR_RESOURCE_ID: resource_id, ATTR_REFERENCE_PROPERTY: property},
        ):
            matches = []
            for record in self._adapter.records():
                value = record.attributes.get(property)
                if value == resource_id or (isinstance(value, list) and resource_id in value):
                    matches.append(record)
            return await self._materialize_all(matches)

    async def find_many_file_metadata_by_ids(self, ids: Sequence[str]) -> list[FileMetadata]:
        resources = await self.find_many_by_ids(ids)
        return [r for r in resources if isinstance(r, FileMetadata)]


class InMemoryPersister:
    """Persister over an InMemoryMetadataAdapter."""

    def __init__(self, adapter: InMemoryMetadataAdapter) -> None:
        self._adapter = adapter

    async def save(self, resource: Resource) -> Resource:
        with self._adapter._tracer.span(
            "lazymigrate.memory.save",
            {ATTR_RESOURCE_ID: resource.id, ATTR_RESOURCE_TYPE: resource.internal_resource},
        ):
            async with self._adapter._lock:
                existing = self._adapter._records.get(resource.id)
                record = self._adapter.materializer.to_record(resource)
                record = record.model_copy(
                    update={
                        "created_at": existing.created_at if existing else resource.created_at,
                        "updated_at": datetime.now(UTC),
                    }
                )
                self._adapter._records[resource.id] = record
            return await self._adapter.materializer.materialize(record)

    async def save_all(self, resources: Sequence[Resource]) -> list[Resource]:
        return [await self.save(resource) for resource in resources]

    async def delete(self, resource: Resource) -> None:
        async with self._adapter._lock:
            self._adapter._records.pop(resource.id, None)


__all__ = [
    "InMemoryMetadataAdapter",
    "InMemoryQueryService",
    "InMemoryPersister",
]
