"""
Filesystem storage backend.

Writes content beneath a base directory and records it with ``disk://``
identifiers pointing at the absolute path.
"""

from __future__ import annotations

import asyncio
import shutil
from pathlib import Path
from typing import Any, BinaryIO

from lazymigrate.storage.base import MetadataRecordingStorage

DISK_SCHEME = "disk://"


class DiskStorageBackend(MetadataRecordingStorage):
    """
    Storage backend writing files under ``base_path``.

    Example:
        >>> storage = DiskStorageBackend("/srv/repository/files", persister, queries)
    """

    def __init__(self, base_path: str | Path, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.base_path = Path(base_path)

    def path_for(self, file_identifier: str) -> Path:
        if not file_identifier.startswith(DISK_SCHEME):
            raise ValueError(f"Not a disk file identifier: {file_identifier}")
        return Path(file_identifier[len(DISK_SCHEME) :])

    async def _write(self, key: str, content: BinaryIO) -> tuple[str, int]:
        return await asyncio.to_thread(self._copy, self.base_path / key, content)

    async def read(self, file_identifier: str) -> bytes:
        return await asyncio.to_thread(self.path_for(file_identifier).read_bytes)

    @staticmethod
    def _copy(path: Path, content: BinaryIO) -> tuple[str, int]:
        path = path.resolve()
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("wb") as destination:
            shutil.copyfileobj(content, destination)
        return DISK_SCHEME + str(path), path.stat().st_size


__all__ = ["DiskStorageBackend", "DISK_SCHEME"]
