"""
Resource type registry.

Maps the ``internal_resource`` type tag persisted by adapters back to the
pydantic model class used to materialize a record.

Usage:
    # Decorator-based registration
    @register_resource
    class Monograph(Work):
        type_tag: ClassVar[str] = "Monograph"

    # Explicit registration into an isolated registry
    registry = ResourceTypeRegistry()
    registry.register(Monograph)

    # Lookup
    model = registry.get("Monograph")
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterator
from typing import TypeVar, overload

from lazymigrate.exceptions import DuplicateResourceTypeError, UnknownResourceTypeError
from lazymigrate.resources.models import FileMetadata, FileSet, Resource, Work

logger = logging.getLogger(__name__)

TResource = TypeVar("TResource", bound=Resource)


class ResourceTypeRegistry:
    """
    Registry for mapping type tags to resource model classes.

    Thread-Safety:
        All operations are thread-safe and use internal locking.
    """

    def __init__(self, *, include_builtins: bool = True) -> None:
        self._registry: dict[str, type[Resource]] = {}
        self._lock = threading.RLock()
        if include_builtins:
            for model in (Resource, Work, FileSet, FileMetadata):
                self.register(model)

    def register(self, model: type[TResource], type_tag: str | None = None) -> type[TResource]:
        """
        Register a resource model under its type tag.

        Re-registering the same class is a no-op.

        Raises:
            DuplicateResourceTypeError: If another class already owns the tag
        """
        tag = type_tag or model.type_tag
        with self._lock:
            existing = self._registry.get(tag)
            if existing is not None and existing is not model:
                raise DuplicateResourceTypeError(tag, existing, model)
            self._registry[tag] = model
        logger.debug("Registered resource type %s -> %s", tag, model.__name__)
        return model

    def get(self, type_tag: str) -> type[Resource]:
        """
        Look up a model class by type tag.

        Raises:
            UnknownResourceTypeError: If the tag was never registered
        """
        with self._lock:
            model = self._registry.get(type_tag)
            if model is None:
                raise UnknownResourceTypeError(type_tag, list(self._registry))
            return model

    def contains(self, type_tag: str) -> bool:
        with self._lock:
            return type_tag in self._registry

    def __contains__(self, type_tag: object) -> bool:
        return isinstance(type_tag, str) and self.contains(type_tag)

    def __iter__(self) -> Iterator[str]:
        with self._lock:
            return iter(list(self._registry))

    def __len__(self) -> int:
        with self._lock:
            return len(self._registry)


default_registry = ResourceTypeRegistry()


@overload
def register_resource(model: type[TResource]) -> type[TResource]: ...


@overload
def register_resource(
    model: None = None,
    *,
    type_tag: str | None = None,
    registry: ResourceTypeRegistry | None = None,
) -> Callable[[type[TResource]], type[TResource]]: ...


def register_resource(
    model: type[TResource] | None = None,
    *,
    type_tag: str | None = None,
    registry: ResourceTypeRegistry | None = None,
) -> type[TResource] | Callable[[type[TResource]], type[TResource]]:
    """
    Decorator registering a resource model (default registry unless given).

    Can be used bare (``@register_resource``) or with arguments
    (``@register_resource(type_tag="hyrax::monograph")``).
    """
    target = registry or default_registry

    def decorator(cls: type[TResource]) -> type[TResource]:
        return target.register(cls, type_tag)

    if model is not None:
        return decorator(model)
    return decorator


__all__ = [
    "ResourceTypeRegistry",
    "default_registry",
    "register_resource",
]
