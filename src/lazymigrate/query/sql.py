"""
SQLAlchemy metadata adapter for the relational primary store.

Resources are stored as a JSON document per row plus a narrow reference
table that indexes every outgoing id reference (members, files, alternate
identifiers). The reference table is what answers alternate-identifier and
inverse-reference lookups without any JSON operators, so the same SQL runs
on PostgreSQL and SQLite.

Database Tables:
    - orm_resources: one row per resource (id, type tag, JSON metadata)
    - orm_resource_references: (resource_id, property, target_id, position)

Usage:
    >>> engine = create_async_engine("postgresql+asyncpg://...")
    >>> await create_schema(engine)
    >>> adapter = SQLAlchemyMetadataAdapter(engine, materializer)
    >>> resource = await adapter.query_service.find_by("abc123")

Any SQLAlchemy error is reported as BackendUnavailableError so the
federated router can tell an outage from a missing id.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import bindparam, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from lazymigrate.exceptions import BackendUnavailableError, ResourceNotFoundError
from lazymigrate.observability import (
    ATTR_ALTERNATE_ID,
    ATTR_DB_OPERATION,
    ATTR_DB_SYSTEM,
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

logger = logging.getLogger(__name__)

ALTERNATE_IDS_PROPERTY = "alternate_ids"

SCHEMA_STATEMENTS: tuple[str, ...] = (
    """
    CREATE TABLE IF NOT EXISTS orm_resources (
        id VARCHAR(255) PRIMARY KEY,
        internal_resource VARCHAR(255) NOT NULL,
        metadata TEXT NOT NULL,
        created_at VARCHAR(64) NOT NULL,
        updated_at VARCHAR(64) NOT NULL
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_orm_resources_internal_resource
        ON orm_resources (internal_resource)
    """,
    """
    CREATE TABLE IF NOT EXISTS orm_resource_references (
        resource_id VARCHAR(255) NOT NULL,
        property VARCHAR(255) NOT NULL,
        target_id VARCHAR(255) NOT NULL,
        position INTEGER NOT NULL DEFAULT 0
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_orm_resource_references_target
        ON orm_resource_references (target_id, property)
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_orm_resource_references_resource
        ON orm_resource_references (resource_id)
    """,
)

_SELECT_COLUMNS = "r.id, r.internal_resource, r.metadata, r.created_at, r.updated_at"


@asynccontextmanager
async def _open(
    conn: AsyncConnection | AsyncEngine,
    transactional: bool,
) -> AsyncIterator[AsyncConnection]:
    # A caller-supplied AsyncConnection is used as is; its owner handles the transaction.
    if not isinstance(conn, AsyncEngine):
        yield conn
    elif transactional:
        async with conn.begin() as connection:
            yield connection
    else:
        async with conn.connect() as connection:
            yield connection


async def create_schema(conn: AsyncConnection | AsyncEngine) -> None:
    """Create the adapter's tables and indexes if they do not exist."""
    async with _open(conn, transactional=True) as connection:
        for statement in SCHEMA_STATEMENTS:
            await connection.execute(text(statement))


class SQLAlchemyMetadataAdapter:
    """
    Relational metadata adapter exposing a query service and a persister.

    Example:
        >>> adapter = SQLAlchemyMetadataAdapter(engine, name="primary")
        >>> await adapter.persister.save(FileSet(id="fs1"))
        >>> await adapter.query_service.find_by("fs1")
    """

    def __init__(
        self,
        conn: AsyncConnection | AsyncEngine,
        materializer: ResourceMaterializer | None = None,
        *,
        name: str = "primary",
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        # Composition-based tracing
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._conn = conn
        self.name = name
        self.materializer = materializer or ResourceMaterializer()
        self.db_system = conn.dialect.name
        self.query_service = SQLAlchemyQueryService(self)
        self.persister = SQLAlchemyPersister(self)

    @asynccontextmanager
    async def connection(self, transactional: bool = False) -> AsyncIterator[AsyncConnection]:
        """Open a connection, reporting database errors as BackendUnavailableError."""
        try:
            async with _open(self._conn, transactional) as conn:
                yield conn
        except SQLAlchemyError as e:
            logger.warning(f"Database error in metadata adapter '{self.name}': {e}")
            raise BackendUnavailableError(self.name, causes=[e]) from e

    def span_attributes(self, operation: str, **extra: Any) -> dict[str, Any]:
        return {ATTR_DB_SYSTEM: self.db_system, ATTR_DB_OPERATION: operation, **extra}

    @staticmethod
    def row_to_record(row: Any) -> RawRecord:
        return RawRecord(
            id=row.id,
            internal_resource=row.internal_resource,
            attributes=json.loads(row.metadata),
            created_at=datetime.fromisoformat(row.created_at),
            updated_at=datetime.fromisoformat(row.updated_at),
        )


class SQLAlchemyQueryService:
    """QueryService backed by SQL queries."""

    def __init__(self, adapter: SQLAlchemyMetadataAdapter) -> None:
        self._adapter = adapter
        self._tracer = adapter._tracer

    async def _fetch(self, query: Any, params: dict[str, Any]) -> list[RawRecord]:
        async with self._adapter.connection() as conn:
            result = await conn.execute(query, params)
            rows = result.fetchall()
        return [self._adapter.row_to_record(row) for row in rows]

    async def _materialize_all(self, records: Sequence[RawRecord]) -> list[Resource]:
        materializer = self._adapter.materializer
        return [await materializer.materialize(record) for record in records]

    async def find_by(self, resource_id: str) -> Resource:
        with self._tracer.span(
            "lazymigrate.sql.find_by",
            self._adapter.span_attributes("SELECT", **{ATTR_RESOURCE_ID: resource_id}),
        ):
            query = text(f"SELECT {_SELECT_COLUMNS} FROM orm_resources r WHERE r.id = :id")
            records = await self._fetch(query, {"id": resource_id})
            if not records:
                raise ResourceNotFoundError(resource_id)
            return await self._adapter.materializer.materialize(records[0])

    async def find_by_alternate_identifier(self, alternate_identifier: str) -> Resource:
        with self._tracer.span(
            "lazymigrate.sql.find_by_alternate_identifier",
            self._adapter.span_attributes("SELECT", **{ATTR_ALTERNATE_ID: alternate_identifier}),
        ):
            query = text(f"""
                SELECT {_SELECT_COLUMNS}
                FROM orm_resources r
                JOIN orm_resource_references ref ON ref.resource_id = r.id
                WHERE ref.property = :property AND ref.target_id = :target_id
                ORDER BY r.created_at
            """)
            records = await self._fetch(
                query,
                {"property": ALTERNATE_IDS_PROPERTY, "target_id": alternate_identifier},
            )
            if not records:
                raise ResourceNotFoundError(alternate_identifier=alternate_identifier)
            return await self._adapter.materializer.materialize(records[0])

    async def find_many_by_ids(self, ids: Sequence[str]) -> list[Resource]:
        unique_ids = list(dict.fromkeys(ids))
        if not unique_ids:
            return []
        with self._tracer.span(
            "lazymigrate.sql.find_many_by_ids",
            self._adapter.span_attributes("SELECT", **{ATTR_RESOURCE_COUNT: len(unique_ids)}),
        ):
            query = text(
                f"SELECT {_SELECT_COLUMNS} FROM orm_resources r WHERE r.id IN :ids"
            ).bindparams(bindparam("ids", expanding=True))
            records = await self._fetch(query, {"ids": unique_ids})
            by_id = {record.id: record for record in records}
            ordered = [by_id[i] for i in unique_ids if i in by_id]
            return await self._materialize_all(ordered)

    async def find_all(self) -> list[Resource]:
        with self._tracer.span(
            "lazymigrate.sql.find_all",
            self._adapter.span_attributes("SELECT"),
        ):
            query = text(f"SELECT {_SELECT_COLUMNS} FROM orm_resources r ORDER BY r.created_at, r.id")
            return await self._materialize_all(await self._fetch(query, {}))

    async def find_all_of_model(self, model: type[Resource] | str) -> list[Resource]:
        tag = model_tag(model)
        with self._tracer.span(
            "lazymigrate.sql.find_all_of_model",
            self._adapter.span_attributes("SELECT", **{ATTR_RESOURCE_TYPE: tag}),
        ):
            query = text(f"""
                SELECT {_SELECT_COLUMNS}
                FROM orm_resources r
                WHERE r.internal_resource = :tag
                ORDER BY r.created_at, r.id
            """)
            return await self._materialize_all(await self._fetch(query, {"tag": tag}))

    async def find_members(self, resource: Resource) -> list[Resource]:
        return await self.find_many_by_ids(resource.member_ids)

    async def find_inverse_references_by(
        self,
        resource_id: str,
        property: str,
    ) -> list[Resource]:
        with self._tracer.span(
            "lazymigrate.sql.find_inverse_references_by",
            self._adapter.span_attributes(
                "SELECT",
                **{ATTR_RESOURCE_ID: resource_id, ATTR_REFERENCE_PROPERTY: property},
            ),
        ):
            query = text(f"""
                SELECT DISTINCT {_SELECT_COLUMNS}
                FROM orm_resources r
                JOIN orm_resource_references ref ON ref.resource_id = r.id
                WHERE ref.property = :property AND ref.target_id = :target_id
                ORDER BY r.created_at, r.id
            """)
            records = await self._fetch(query, {"property": property, "target_id": resource_id})
            return await self._materialize_all(records)

    async def find_many_file_metadata_by_ids(self, ids: Sequence[str]) -> list[FileMetadata]:
        resources = await self.find_many_by_ids(ids)
        return [r for r in resources if isinstance(r, FileMetadata)]


class SQLAlchemyPersister:
    """Persister writing resources and their reference index in one transaction."""

    def __init__(self, adapter: SQLAlchemyMetadataAdapter) -> None:
        self._adapter = adapter
        self._tracer = adapter._tracer

    async def save(self, resource: Resource) -> Resource:
        with self._tracer.span(
            "lazymigrate.sql.save",
            self._adapter.span_attributes(
                "UPSERT",
                **{
                    ATTR_RESOURCE_ID: resource.id,
                    ATTR_RESOURCE_TYPE: resource.internal_resource,
                },
            ),
        ):
            record = self._adapter.materializer.to_record(resource)
            now = datetime.now(UTC).isoformat()
            created_at = (record.created_at or datetime.now(UTC)).isoformat()

            upsert = text("""
                INSERT INTO orm_resources (id, internal_resource, metadata, created_at, updated_at)
                VALUES (:id, :internal_resource, :metadata, :created_at, :updated_at)
                ON CONFLICT (id) DO UPDATE
                SET internal_resource = EXCLUDED.internal_resource,
                    metadata = EXCLUDED.metadata,
                    updated_at = EXCLUDED.updated_at
            """)
            references = [
                {"resource_id": resource.id, "property": prop, "target_id": target, "position": i}
                for prop, targets in self._references_for(resource).items()
                for i, target in enumerate(targets)
            ]

            async with self._adapter.connection(transactional=True) as conn:
                await conn.execute(
                    upsert,
                    {
                        "id": record.id,
                        "internal_resource": record.internal_resource,
                        "metadata": json.dumps(record.attributes),
                        "created_at": created_at,
                        "updated_at": now,
                    },
                )
                await conn.execute(
                    text("DELETE FROM orm_resource_references WHERE resource_id = :id"),
                    {"id": resource.id},
                )
                if references:
                    await conn.execute(
                        text("""
                            INSERT INTO orm_resource_references
                                (resource_id, property, target_id, position)
                            VALUES (:resource_id, :property, :target_id, :position)
                        """),
                        references,
                    )

            return await self._adapter.query_service.find_by(resource.id)

    async def delete(self, resource: Resource) -> None:
        with self._tracer.span(
            "lazymigrate.sql.delete",
            self._adapter.span_attributes("DELETE", **{ATTR_RESOURCE_ID: resource.id}),
        ):
            async with self._adapter.connection(transactional=True) as conn:
                await conn.execute(
                    text("DELETE FROM orm_resource_references WHERE resource_id = :id"),
                    {"id": resource.id},
                )
                await conn.execute(
                    text("DELETE FROM orm_resources WHERE id = :id"),
                    {"id": resource.id},
                )

    @staticmethod
    def _references_for(resource: Resource) -> dict[str, list[str]]:
        refs = resource.references()
        refs[ALTERNATE_IDS_PROPERTY] = list(resource.alternate_ids)
        return refs


__all__ = [
    "SQLAlchemyMetadataAdapter",
    "SQLAlchemyQueryService",
    "SQLAlchemyPersister",
    "SCHEMA_STATEMENTS",
    "create_schema",
]
