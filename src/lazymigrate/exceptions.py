"""Library exceptions for the lazymigrate package."""

from __future__ import annotations

from collections.abc import Sequence


class LazyMigrateError(Exception):
    """Base exception for lazymigrate library."""

    pass


class ResourceNotFoundError(LazyMigrateError):
    """Raised when no queried backend holds the requested resource."""

    def __init__(self, resource_id: str | None = None, *, alternate_identifier: str | None = None):
        self.resource_id = resource_id
        self.alternate_identifier = alternate_identifier
        if alternate_identifier is not None:
            super().__init__(f"Resource not found for alternate identifier: {alternate_identifier}")
        else:
            super().__init__(f"Resource not found: {resource_id}")


class BackendUnavailableError(LazyMigrateError):
    """
    Raised when a backend cannot be reached or fails while answering a query.

    Distinguished from ResourceNotFoundError so callers can tell "the id does
    not exist" apart from "we could not ask".

    Attributes:
        backend: Name of the backend(s) that failed.
        causes: Underlying exceptions, when known.
    """

    def __init__(
        self,
        backend: str,
        message: str | None = None,
        *,
        causes: Sequence[BaseException] = (),
    ) -> None:
        self.backend = backend
        self.causes = list(causes)
        detail = message or "; ".join(str(c) for c in self.causes) or "unavailable"
        super().__init__(f"Backend '{backend}' unavailable: {detail}")


class LegacyContentReadError(LazyMigrateError):
    """Raised when legacy-store bytes cannot be fetched (network error, 404, ...)."""

    def __init__(self, file_identifier: str, message: str) -> None:
        self.file_identifier = file_identifier
        super().__init__(f"Failed to read legacy content {file_identifier}: {message}")


class UnknownResourceTypeError(LazyMigrateError, KeyError):
    """
    Raised when a raw record carries a type tag nobody registered.

    Provides the list of registered tags to make configuration errors obvious.
    """

    def __init__(self, type_tag: str, available_types: list[str]) -> None:
        self.type_tag = type_tag
        self.available_types = available_types
        available = ", ".join(sorted(available_types)) if available_types else "none"
        super().__init__(
            f"Unknown resource type: '{type_tag}'. "
            f"Available types: {available}. "
            f"Did you forget to register this resource type?"
        )

    def __str__(self) -> str:
        return str(self.args[0])


class DuplicateResourceTypeError(LazyMigrateError, ValueError):
    """Raised when a different class is registered under an existing type tag."""

    def __init__(self, type_tag: str, existing_class: type, new_class: type) -> None:
        self.type_tag = type_tag
        self.existing_class = existing_class
        self.new_class = new_class
        super().__init__(
            f"Resource type '{type_tag}' is already registered to {existing_class.__name__}. "
            f"Cannot register {new_class.__name__} with the same type tag."
        )


__all__ = [
    "LazyMigrateError",
    "ResourceNotFoundError",
    "BackendUnavailableError",
    "LegacyContentReadError",
    "UnknownResourceTypeError",
    "DuplicateResourceTypeError",
]
