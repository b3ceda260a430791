"""Resource models, type registry and materialization."""

from lazymigrate.resources.materializer import ResourceMaterializer
from lazymigrate.resources.models import (
    FileMetadata,
    FileSet,
    HasFileIds,
    RawRecord,
    Resource,
    StoredFile,
    Use,
    User,
    Work,
    exposes_file_ids,
    filter_uses,
)
from lazymigrate.resources.registry import (
    ResourceTypeRegistry,
    default_registry,
    register_resource,
)

__all__ = [
    "Resource",
    "Work",
    "FileSet",
    "FileMetadata",
    "HasFileIds",
    "RawRecord",
    "StoredFile",
    "Use",
    "User",
    "exposes_file_ids",
    "filter_uses",
    "ResourceMaterializer",
    "ResourceTypeRegistry",
    "default_registry",
    "register_resource",
]
