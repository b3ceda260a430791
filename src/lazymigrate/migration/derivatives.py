"""
Derivative files on local disk.

Derivatives (thumbnails, extracted text, service copies) are generated next
to the repository under a pair-tree layout. The id ``abc123`` lives under
``<root>/ab/c1/`` with filenames of the form ``23-<kind>.<ext>``:

    <root>/ab/c1/23-thumbnail.jpeg
    <root>/ab/c1/23-fulltext.txt

The kind suffix after the last ``-`` decides which Use the derivative gets
when it is persisted into the destination storage backend.
"""

from __future__ import annotations

import logging
import mimetypes
from pathlib import Path

from lazymigrate.resources.models import Resource, Use

logger = logging.getLogger(__name__)

TEXT_SUFFIXES = frozenset({"txt", "json", "xml"})
DEFAULT_MIME_TYPE = "application/octet-stream"


def container_for(path: str | Path) -> Use:
    """
    Map a derivative filename to the Use it is stored under.

    ``thumbnail`` kinds become thumbnail images. Text kinds, or any kind
    stored with a txt/json/xml extension, become extracted text. Everything
    else is a service file.

        >>> container_for("/d/ab/c1/23-thumbnail.jpg")
        <Use.THUMBNAIL_IMAGE: 'thumbnail_image'>
        >>> container_for("23-fulltext.txt")
        <Use.EXTRACTED_TEXT: 'extracted_text'>
    """
    path = Path(path)
    kind = path.stem.split("-")[-1].lower()
    extension = path.suffix.lstrip(".").lower()

    if kind == "thumbnail":
        return Use.THUMBNAIL_IMAGE
    if kind in TEXT_SUFFIXES or extension in TEXT_SUFFIXES:
        return Use.EXTRACTED_TEXT
    return Use.SERVICE_FILE


def mime_type_for(path: str | Path) -> str:
    """Guess a content type from the file extension."""
    mime_type, _ = mimetypes.guess_type(Path(path).name, strict=False)
    return mime_type or DEFAULT_MIME_TYPE


def pair_path(resource_id: str) -> list[str]:
    """Split an id into two-character segments: ``abc12`` -> ``['ab', 'c1', '2']``."""
    if not resource_id:
        raise ValueError("resource_id must not be empty")
    return [resource_id[i : i + 2] for i in range(0, len(resource_id), 2)]


class DerivativePathEnumerator:
    """
    Locates derivative files for resources under a pair-tree root.

    Args:
        root: Directory the derivative tree is rooted at
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def _directory_and_prefix(self, resource_id: str) -> tuple[Path, str]:
        segments = pair_path(resource_id)
        return self.root.joinpath(*segments[:-1]), f"{segments[-1]}-"

    def path_for(self, resource_id: str, kind: str, extension: str) -> Path:
        """Where the ``kind`` derivative of ``resource_id`` is (or would be) stored."""
        directory, prefix = self._directory_and_prefix(resource_id)
        return directory / f"{prefix}{kind}.{extension.lstrip('.')}"

    def paths_for(self, resource: Resource | str) -> list[Path]:
        """
        All derivative files currently on disk for a resource, sorted by name.

        A resource without a derivative directory has no derivatives.
        """
        resource_id = resource if isinstance(resource, str) else resource.id
        directory, prefix = self._directory_and_prefix(resource_id)
        if not directory.is_dir():
            return []

        paths = sorted(
            entry
            for entry in directory.iterdir()
            if entry.is_file() and entry.name.startswith(prefix)
        )
        logger.debug("Found %d derivative(s) for %s under %s", len(paths), resource_id, directory)
        return paths


__all__ = [
    "container_for",
    "mime_type_for",
    "pair_path",
    "DerivativePathEnumerator",
]
