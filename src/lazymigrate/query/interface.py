"""
Query service and persister protocols.

Both the primary (relational) store and the legacy store are consumed
through the same read surface, which is what lets the federated router
treat them interchangeably. Lookups by id fail with ResourceNotFoundError;
transport or database failures surface as BackendUnavailableError.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from lazymigrate.resources.models import FileMetadata, Resource


@runtime_checkable
class QueryService(Protocol):
    """
    Read-only resource query surface.

    Multi-result queries return lists in a stable order and silently omit
    ids that do not exist.
    """

    async def find_by(self, resource_id: str) -> Resource:
        """
        Find a resource by id.

        Raises:
            ResourceNotFoundError: If the id does not exist
            BackendUnavailableError: If the backend cannot be queried
        """
        ...

    async def find_by_alternate_identifier(self, alternate_identifier: str) -> Resource:
        """
        Find a resource by one of its alternate identifiers.

        Raises:
            ResourceNotFoundError: If no resource carries the identifier
            BackendUnavailableError: If the backend cannot be queried
        """
        ...

    async def find_many_by_ids(self, ids: Sequence[str]) -> list[Resource]:
        """Find every resource whose id is in ``ids``, in ``ids`` order."""
        ...

    async def find_all(self) -> list[Resource]:
        """Return every resource."""
        ...

    async def find_all_of_model(self, model: type[Resource] | str) -> list[Resource]:
        """Return every resource with the given type (class or type tag)."""
        ...

    async def find_members(self, resource: Resource) -> list[Resource]:
        """Return the resources listed in ``resource.member_ids``, in that order."""
        ...

    async def find_inverse_references_by(
        self,
        resource_id: str,
        property: str,
    ) -> list[Resource]:
        """Return resources whose ``property`` references ``resource_id``."""
        ...

    async def find_many_file_metadata_by_ids(self, ids: Sequence[str]) -> list[FileMetadata]:
        """Like find_many_by_ids, restricted to FileMetadata resources."""
        ...


@runtime_checkable
class Persister(Protocol):
    """Write surface of a metadata store."""

    async def save(self, resource: Resource) -> Resource:
        """Insert or update a resource and return the stored version."""
        ...

    async def delete(self, resource: Resource) -> None:
        """Remove a resource. Deleting a missing resource is a no-op."""
        ...


def model_tag(model: type[Resource] | str) -> str:
    """Normalize a model class or tag to its type tag."""
    if isinstance(model, str):
        return model
    return model.type_tag


__all__ = [
    "QueryService",
    "Persister",
    "model_tag",
]
