"""
ResourceMaterializer - converts raw storage records into domain resources.

Every persistence adapter funnels its reads through a single materializer.
That makes it the one place that sees every resource on its way to a
caller, so it is where the lazy migration hook lives: after building the
domain object, the materializer asks the attached MigrationTrigger whether a
background migration should be scheduled for it.

The read path never fails because of the hook. Trigger errors (destination
lookup failures, queue errors) are logged and the freshly materialized
resource is returned regardless.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from lazymigrate.resources.models import RawRecord, Resource
from lazymigrate.resources.registry import ResourceTypeRegistry, default_registry

if TYPE_CHECKING:
    from lazymigrate.migration.trigger import MigrationDecision, MigrationTrigger

logger = logging.getLogger(__name__)

_RECORD_FIELDS = frozenset({"id", "internal_resource", "created_at", "updated_at"})


class ResourceMaterializer:
    """
    Builds Resource objects from RawRecords and consults the migration trigger.

    Example:
        >>> materializer = ResourceMaterializer()
        >>> resource = await materializer.materialize(record)
        >>>
        >>> # Later, once the trigger's dependencies exist
        >>> materializer.attach_trigger(trigger)
    """

    def __init__(
        self,
        registry: ResourceTypeRegistry | None = None,
        trigger: MigrationTrigger | None = None,
    ) -> None:
        self._registry = registry or default_registry
        self._trigger = trigger

    @property
    def registry(self) -> ResourceTypeRegistry:
        return self._registry

    @property
    def trigger(self) -> MigrationTrigger | None:
        return self._trigger

    def attach_trigger(self, trigger: MigrationTrigger | None) -> None:
        """
        Attach (or detach, with None) the migration trigger.

        The trigger usually depends on a query service that itself depends on
        this materializer, so it is attached after construction.
        """
        self._trigger = trigger

    async def materialize(self, record: RawRecord) -> Resource:
        """
        Convert a raw record into its domain resource.

        Args:
            record: Raw storage record

        Returns:
            The materialized Resource (always, even if the trigger fails)

        Raises:
            UnknownResourceTypeError: If the record's type tag is not registered
            pydantic.ValidationError: If the stored attributes are malformed
        """
        resource = self.build(record)
        if self._trigger is not None:
            await self._consult_trigger(resource)
        return resource

    def build(self, record: RawRecord) -> Resource:
        """Convert without consulting the trigger."""
        model = self._registry.get(record.internal_resource)
        data: dict[str, Any] = {
            key: value for key, value in record.attributes.items() if key not in _RECORD_FIELDS
        }
        data["id"] = record.id
        data["internal_resource"] = record.internal_resource
        if record.created_at is not None:
            data["created_at"] = record.created_at
        if record.updated_at is not None:
            data["updated_at"] = record.updated_at
        return model.model_validate(data)

    def to_record(self, resource: Resource) -> RawRecord:
        """Convert a domain resource into a raw record for persistence."""
        attributes = resource.model_dump(mode="json", exclude=set(_RECORD_FIELDS))
        return RawRecord(
            id=resource.id,
            internal_resource=resource.internal_resource,
            attributes=attributes,
            created_at=resource.created_at,
            updated_at=resource.updated_at,
        )

    async def _consult_trigger(self, resource: Resource) -> MigrationDecision | None:
        assert self._trigger is not None
        try:
            return await self._trigger.evaluate(resource)
        except Exception as e:
            # Migration is best-effort; the reader still gets its resource.
            logger.warning(
                f"Migration trigger failed for resource {resource.id}: {e}",
                exc_info=True,
            )
            return None


__all__ = ["ResourceMaterializer"]
