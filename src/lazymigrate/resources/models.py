"""
Domain resource models.

Resources are documents identified by a stable, opaque id. Every variant
carries an ``internal_resource`` type tag that storage adapters persist and
the materializer uses to pick the model class back out of the registry.

Models in this module:
    - Resource: Base document (id, type tag, alternate ids, label, depositor)
    - Work: Generic work that groups members
    - FileSet: Resource owning binary files and their derivatives
    - FileMetadata: Description of one stored binary file
    - User: Owner of an upload
    - StoredFile: Result returned by a storage backend
    - RawRecord: Storage-agnostic representation handed to the materializer
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime
from enum import Enum
from typing import Any, ClassVar, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Use(str, Enum):
    """
    Semantic classification of a stored file.

    The vocabulary is fixed; tags outside of it are dropped when a file is
    re-uploaded into the destination storage backend.
    """

    ORIGINAL_FILE = "original_file"
    THUMBNAIL_IMAGE = "thumbnail_image"
    EXTRACTED_TEXT = "extracted_text"
    SERVICE_FILE = "service_file"
    PRESERVATION_FILE = "preservation_file"
    INTERMEDIATE_FILE = "intermediate_file"

    @classmethod
    def use_list(cls) -> frozenset[str]:
        """All tag values in the vocabulary."""
        return frozenset(member.value for member in cls)


def filter_uses(tags: Iterable[str]) -> list[Use]:
    """
    Keep only tags from the fixed vocabulary, preserving order.

    Unknown tags are silently discarded; duplicates collapse to their first
    occurrence.
    """
    allowed = Use.use_list()
    result: list[Use] = []
    for tag in tags:
        value = tag.value if isinstance(tag, Use) else str(tag)
        if value in allowed and Use(value) not in result:
            result.append(Use(value))
    return result


def _unique(values: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    ordered: list[str] = []
    for value in values:
        if value not in seen:
            seen.add(value)
            ordered.append(value)
    return ordered


class Resource(BaseModel):
    """
    Base class for all repository resources.

    Attributes:
        id: Opaque, globally unique identifier
        internal_resource: Type tag used to reconstruct the model class
        alternate_ids: Additional identifiers the resource can be found by
        label: Human readable label, also used as upload filename
        depositor: User key of the depositing user
        member_ids: Ordered ids of member resources
        created_at: Creation timestamp (UTC)
        updated_at: Last modification timestamp (UTC)
    """

    model_config = ConfigDict(validate_assignment=True)

    type_tag: ClassVar[str] = "Resource"

    id: str = Field(..., min_length=1)
    internal_resource: str = ""
    alternate_ids: list[str] = Field(default_factory=list)
    label: str | None = None
    depositor: str | None = None
    member_ids: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def model_post_init(self, __context: Any) -> None:
        if not self.internal_resource:
            self.internal_resource = type(self).type_tag

    def references(self) -> dict[str, list[str]]:
        """
        Outgoing id references by property name.

        Used by adapters to answer inverse-reference queries.
        """
        return {"member_ids": list(self.member_ids)}


class Work(Resource):
    """Generic work; groups file sets and other works through member_ids."""

    type_tag: ClassVar[str] = "Work"


class FileSet(Resource):
    """
    Resource owning one or more binary files plus derivatives.

    ``file_ids`` is ordered and unique; order matters for display only.
    """

    type_tag: ClassVar[str] = "FileSet"

    file_ids: list[str] = Field(default_factory=list)

    @field_validator("file_ids")
    @classmethod
    def _dedupe_file_ids(cls, value: list[str]) -> list[str]:
        return _unique(value)

    def references(self) -> dict[str, list[str]]:
        refs = super().references()
        refs["file_ids"] = list(self.file_ids)
        return refs


class FileMetadata(Resource):
    """
    Metadata for one stored binary file.

    The ``file_identifier`` prefix encodes which store owns the bytes, e.g.
    ``legacy:...`` for content still held by the legacy store.
    """

    type_tag: ClassVar[str] = "FileMetadata"

    file_identifier: str = ""
    original_filename: str = ""
    mime_type: str = "application/octet-stream"
    use: list[str] = Field(default_factory=list)
    file_set_id: str | None = None
    size: int | None = None

    def references(self) -> dict[str, list[str]]:
        refs = super().references()
        refs["file_set_id"] = [self.file_set_id] if self.file_set_id else []
        return refs


@runtime_checkable
class HasFileIds(Protocol):
    """Capability of resources that own binary files."""

    file_ids: list[str]


def exposes_file_ids(resource: object) -> bool:
    """True if the resource exposes a file-id collection."""
    return isinstance(resource, HasFileIds) and isinstance(
        getattr(resource, "file_ids", None), list
    )


class User(BaseModel):
    """Owner of an upload, resolved from a resource's depositor."""

    model_config = ConfigDict(frozen=True)

    user_key: str
    display_name: str | None = None


class StoredFile(BaseModel):
    """Result of persisting bytes into a storage backend."""

    model_config = ConfigDict(frozen=True)

    id: str
    file_identifier: str
    size: int
    use: list[str] = Field(default_factory=list)
    mime_type: str = "application/octet-stream"


class RawRecord(BaseModel):
    """
    Storage-agnostic record handed to the materializer.

    Adapters store resources however they like; on the way out they produce
    a RawRecord and let the materializer build the domain object.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    internal_resource: str
    attributes: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime | None = None
    updated_at: datetime | None = None


__all__ = [
    "Use",
    "filter_uses",
    "Resource",
    "Work",
    "FileSet",
    "FileMetadata",
    "HasFileIds",
    "exposes_file_ids",
    "User",
    "StoredFile",
    "RawRecord",
]
