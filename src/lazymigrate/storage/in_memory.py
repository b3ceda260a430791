"""
In-memory storage backend.

Keeps content in a dictionary. Useful for tests and development; all
content is lost when the process exits.
"""

from __future__ import annotations

import asyncio
from typing import Any, BinaryIO

from lazymigrate.storage.base import MetadataRecordingStorage

MEMORY_SCHEME = "memory://"


class InMemoryStorageBackend(MetadataRecordingStorage):
    """
    Storage backend holding bytes in memory.

    Example:
        >>> storage = InMemoryStorageBackend(adapter.persister, adapter.query_service)
        >>> stored = await storage.upload(file_set, io.BytesIO(b"..."), "a.pdf",
        ...                               [Use.ORIGINAL_FILE], user, "application/pdf")
        >>> await storage.read(stored.file_identifier)
    """

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._blobs: dict[str, bytes] = {}

    async def _write(self, key: str, content: BinaryIO) -> tuple[str, int]:
        data = await asyncio.to_thread(content.read)
        identifier = MEMORY_SCHEME + key
        self._blobs[identifier] = data
        return identifier, len(data)

    async def read(self, file_identifier: str) -> bytes:
        try:
            return self._blobs[file_identifier]
        except KeyError:
            raise FileNotFoundError(file_identifier) from None

    @property
    def identifiers(self) -> list[str]:
        return list(self._blobs)


__all__ = ["InMemoryStorageBackend", "MEMORY_SCHEME"]
