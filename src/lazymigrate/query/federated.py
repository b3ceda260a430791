"""
FederatedQueryService - one read view over the primary and legacy stores.

While resources migrate lazily from the legacy store to the primary store,
any given id may live in either one (or, for the length of an in-flight
migration, both). The federated service answers every query against both
backends and presents a single, consistent result.

Routing rules:
    - Single lookups (find_by, find_by_alternate_identifier): ask the primary
      store first and only fall back to the legacy store when the primary
      does not have the resource. A primary hit never touches the legacy
      store.
    - Multi-result lookups (find_many_by_ids, find_all, find_all_of_model,
      find_members, find_inverse_references_by,
      find_many_file_metadata_by_ids): ask both stores concurrently, keep the
      primary results in their order, then append legacy results whose id
      the primary did not return. Primary always wins.

Failure handling:
    - Multi-result lookups are best-effort: an unavailable backend
      contributes nothing and a warning is logged. Only when both backends
      are unavailable is BackendUnavailableError raised.
    - Single lookups raise ResourceNotFoundError only when every backend
      answered "not found". If no result was found and any backend was
      unavailable, BackendUnavailableError is raised instead, since the
      resource might live on the backend that could not be asked.

The service never writes to either backend.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import TypeVar

from lazymigrate.exceptions import BackendUnavailableError, ResourceNotFoundError
from lazymigrate.observability import (
    ATTR_ALTERNATE_ID,
    ATTR_BACKEND,
    ATTR_LEGACY_COUNT,
    ATTR_PRIMARY_COUNT,
    ATTR_REFERENCE_PROPERTY,
    ATTR_RESOURCE_COUNT,
    ATTR_RESOURCE_ID,
    ATTR_RESOURCE_TYPE,
    Tracer,
    create_tracer,
)
from lazymigrate.query.interface import QueryService, model_tag
from lazymigrate.resources.models import FileMetadata, Resource

logger = logging.getLogger(__name__)

TResource = TypeVar("TResource", bound=Resource)

PRIMARY = "primary"
LEGACY = "legacy"


def merge_preferring_primary(
    primary: Sequence[TResource],
    legacy: Sequence[TResource],
) -> list[TResource]:
    """
    Merge two result lists, de-duplicating by id.

    Primary results come first in their original order; legacy results
    follow in theirs, minus any id already seen.
    """
    seen: set[str] = set()
    merged: list[TResource] = []
    for resource in (*primary, *legacy):
        if resource.id in seen:
            continue
        seen.add(resource.id)
        merged.append(resource)
    return merged


class FederatedQueryService:
    """
    QueryService composing a primary and a legacy QueryService.

    Example:
        >>> router = FederatedQueryService(primary=postgres_queries, legacy=legacy_queries)
        >>> resource = await router.find_by("abc123")   # primary first
        >>> works = await router.find_all_of_model(Work)  # merged, primary wins

    Attributes:
        primary: Query service of the store resources migrate into
        legacy: Query service of the store being migrated away from
    """

    def __init__(
        self,
        primary: QueryService,
        legacy: QueryService,
        *,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self.primary = primary
        self.legacy = legacy

    @property
    def services(self) -> tuple[QueryService, QueryService]:
        """Backends in precedence order; the first one is the migration destination."""
        return (self.primary, self.legacy)

    # =========================================================================
    # Single-result lookups
    # =========================================================================

    async def find_by(self, resource_id: str) -> Resource:
        """
        Find a resource by id, primary store first.

        Raises:
            ResourceNotFoundError: Neither backend has the id
            BackendUnavailableError: No result and at least one backend failed
        """
        with self._tracer.span(
            "lazymigrate.router.find_by",
            {ATTR_RESOURCE_ID: resource_id},
        ) as span:
            resource, backend = await self._first_found(
                lambda service: service.find_by(resource_id),
                ResourceNotFoundError(resource_id),
            )
            if span:
                span.set_attribute(ATTR_BACKEND, backend)
            return resource

    async def find_by_alternate_identifier(self, alternate_identifier: str) -> Resource:
        """
        Find a resource by alternate identifier, primary store first.

        Raises:
            ResourceNotFoundError: Neither backend has the identifier
            BackendUnavailableError: No result and at least one backend failed
        """
        with self._tracer.span(
            "lazymigrate.router.find_by_alternate_identifier",
            {ATTR_ALTERNATE_ID: alternate_identifier},
        ) as span:
            resource, backend = await self._first_found(
                lambda service: service.find_by_alternate_identifier(alternate_identifier),
                ResourceNotFoundError(alternate_identifier=alternate_identifier),
            )
            if span:
                span.set_attribute(ATTR_BACKEND, backend)
            return resource

    async def _first_found(
        self,
        lookup: Callable[[QueryService], Awaitable[Resource]],
        not_found: ResourceNotFoundError,
    ) -> tuple[Resource, str]:
        failures: list[BackendUnavailableError] = []
        for name, service in ((PRIMARY, self.primary), (LEGACY, self.legacy)):
            try:
                resource = await lookup(service)
            except ResourceNotFoundError:
                logger.debug(f"{not_found} in {name} store")
                continue
            except BackendUnavailableError as e:
                logger.warning(f"{name} store unavailable during lookup: {e}")
                failures.append(e)
                continue
            return resource, name

        if failures:
            backends = "+".join(f.backend for f in failures)
            raise BackendUnavailableError(backends, causes=failures)
        raise not_found

    # =========================================================================
    # Multi-result lookups
    # =========================================================================

    async def find_many_by_ids(self, ids: Sequence[str]) -> list[Resource]:
        with self._tracer.span(
            "lazymigrate.router.find_many_by_ids",
            {ATTR_RESOURCE_COUNT: len(ids)},
        ) as span:
            ids = list(ids)
            return await self._merged(lambda service: service.find_many_by_ids(ids), span)

    async def find_all(self) -> list[Resource]:
        with self._tracer.span("lazymigrate.router.find_all") as span:
            return await self._merged(lambda service: service.find_all(), span)

    async def find_all_of_model(self, model: type[Resource] | str) -> list[Resource]:
        with self._tracer.span(
            "lazymigrate.router.find_all_of_model",
            {ATTR_RESOURCE_TYPE: model_tag(model)},
        ) as span:
            return await self._merged(lambda service: service.find_all_of_model(model), span)

    async def find_members(self, resource: Resource) -> list[Resource]:
        """
        Members of ``resource``, each resolved primary-first.

        Results follow ``resource.member_ids`` order rather than the
        primary-then-legacy order, since member order is meaningful.
        """
        with self._tracer.span(
            "lazymigrate.router.find_members",
            {ATTR_RESOURCE_ID: resource.id},
        ) as span:
            members = await self._merged(lambda service: service.find_members(resource), span)
            by_id = {member.id: member for member in members}
            return [by_id[i] for i in dict.fromkeys(resource.member_ids) if i in by_id]

    async def find_inverse_references_by(
        self,
        resource_id: str,
        property: str,
    ) -> list[Resource]:
        with self._tracer.span(
            "lazymigrate.router.find_inverse_references_by",
            {ATTR_RESOURCE_ID: resource_id, ATTR_REFERENCE_PROPERTY: property},
        ) as span:
            return await self._merged(
                lambda service: service.find_inverse_references_by(resource_id, property),
                span,
            )

    async def find_many_file_metadata_by_ids(self, ids: Sequence[str]) -> list[FileMetadata]:
        with self._tracer.span(
            "lazymigrate.router.find_many_file_metadata_by_ids",
            {ATTR_RESOURCE_COUNT: len(ids)},
        ) as span:
            ids = list(ids)
            return await self._merged(
                lambda service: service.find_many_file_metadata_by_ids(ids),
                span,
            )

    async def _merged(
        self,
        query: Callable[[QueryService], Awaitable[list[TResource]]],
        span: object | None,
    ) -> list[TResource]:
        primary_result, legacy_result = await asyncio.gather(
            query(self.primary),
            query(self.legacy),
            return_exceptions=True,
        )

        failures: list[BackendUnavailableError] = []
        contributions: list[list[TResource]] = []
        for name, result in ((PRIMARY, primary_result), (LEGACY, legacy_result)):
            if isinstance(result, BackendUnavailableError):
                logger.warning(f"{name} store unavailable, omitting its results: {result}")
                failures.append(result)
                contributions.append([])
            elif isinstance(result, BaseException):
                raise result
            else:
                contributions.append(result)

        if len(failures) == 2:
            raise BackendUnavailableError(
                "+".join(f.backend for f in failures),
                causes=failures,
            )

        primary, legacy = contributions
        merged = merge_preferring_primary(primary, legacy)
        if span is not None:
            primary_ids = {resource.id for resource in primary}
            legacy_only = sum(1 for resource in merged if resource.id not in primary_ids)
            span.set_attribute(ATTR_PRIMARY_COUNT, len(primary_ids))  # type: ignore[attr-defined]
            span.set_attribute(ATTR_LEGACY_COUNT, legacy_only)  # type: ignore[attr-defined]
        return merged


__all__ = [
    "FederatedQueryService",
    "merge_preferring_primary",
]
