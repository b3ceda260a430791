"""Destination storage backends."""

from lazymigrate.storage.base import DerivativeScheduler, MetadataRecordingStorage
from lazymigrate.storage.disk import DISK_SCHEME, DiskStorageBackend
from lazymigrate.storage.in_memory import MEMORY_SCHEME, InMemoryStorageBackend
from lazymigrate.storage.interface import DerivativeTarget, StorageBackend

__all__ = [
    "StorageBackend",
    "DerivativeTarget",
    "DerivativeScheduler",
    "MetadataRecordingStorage",
    "InMemoryStorageBackend",
    "DiskStorageBackend",
    "MEMORY_SCHEME",
    "DISK_SCHEME",
]
