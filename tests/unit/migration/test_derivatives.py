"""
Unit tests for derivative classification and the pair-tree enumerator.
"""

from pathlib import Path

import pytest

from lazymigrate.migration.derivatives import (
    DerivativePathEnumerator,
    container_for,
    mime_type_for,
    pair_path,
)
from lazymigrate.resources.models import FileSet, Use


class TestContainerFor:
    """Tests for container_for."""

    @pytest.mark.parametrize(
        "path",
        [
            "/derivatives/ab/c1/23-thumbnail.jpg",
            "23-thumbnail.jpeg",
            "23-THUMBNAIL.png",
        ],
    )
    def test_thumbnails(self, path: str):
        """Thumbnail kinds map to thumbnail images."""
        assert container_for(path) is Use.THUMBNAIL_IMAGE

    @pytest.mark.parametrize(
        "path",
        [
            "/derivatives/ab/c1/23-fulltext.txt",
            "23-extracted.json",
            "23-ocr.xml",
            "23-txt.bin",
        ],
    )
    def test_extracted_text(self, path: str):
        """Text kinds or text extensions map to extracted text."""
        assert container_for(path) is Use.EXTRACTED_TEXT

    @pytest.mark.parametrize(
        "path",
        [
            "/derivatives/ab/c1/23-foo.bin",
            "23-access.mp4",
            "23-webm.webm",
            "noextension",
        ],
    )
    def test_everything_else_is_a_service_file(self, path: str):
        """Unrecognized kinds map to service files."""
        assert container_for(path) is Use.SERVICE_FILE

    def test_accepts_path_objects(self):
        """Paths and strings are treated alike."""
        assert container_for(Path("x/23-thumbnail.jpg")) is Use.THUMBNAIL_IMAGE


class TestMimeTypeFor:
    """Tests for mime_type_for."""

    def test_known_extensions(self):
        """Common extensions are recognized."""
        assert mime_type_for("23-thumbnail.jpg") == "image/jpeg"
        assert mime_type_for("23-fulltext.txt") == "text/plain"

    def test_unknown_extension(self):
        """Unknown extensions fall back to a generic type."""
        assert mime_type_for("23-foo.unknownext") == "application/octet-stream"


class TestPairPath:
    """Tests for pair_path."""

    def test_even_length(self):
        """Ids split into two-character segments."""
        assert pair_path("abc123") == ["ab", "c1", "23"]

    def test_odd_length(self):
        """The last segment may be a single character."""
        assert pair_path("abc12") == ["ab", "c1", "2"]

    def test_empty_id(self):
        """Empty ids have no pair path."""
        with pytest.raises(ValueError):
            pair_path("")


class TestDerivativePathEnumerator:
    """Tests for DerivativePathEnumerator."""

    def test_path_for(self, tmp_path: Path):
        """Derivative paths follow the pair-tree layout."""
        enumerator = DerivativePathEnumerator(tmp_path)

        path = enumerator.path_for("abc123", "thumbnail", ".jpeg")

        assert path == tmp_path / "ab" / "c1" / "23-thumbnail.jpeg"

    def test_paths_for_lists_existing_derivatives(self, tmp_path: Path):
        """Only files belonging to the resource are listed, sorted by name."""
        enumerator = DerivativePathEnumerator(tmp_path)
        for kind, ext in [("thumbnail", "jpeg"), ("fulltext", "txt")]:
            path = enumerator.path_for("abc123", kind, ext)
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(b"data")
        # A sibling resource sharing the directory
        (tmp_path / "ab" / "c1" / "24-thumbnail.jpeg").write_bytes(b"other")
        (tmp_path / "ab" / "c1" / "23-subdir").mkdir()

        paths = enumerator.paths_for(FileSet(id="abc123"))

        assert [p.name for p in paths] == ["23-fulltext.txt", "23-thumbnail.jpeg"]

    def test_paths_for_accepts_ids(self, tmp_path: Path):
        """paths_for takes a resource or its id."""
        enumerator = DerivativePathEnumerator(tmp_path)
        path = enumerator.path_for("abcd", "thumbnail", "jpg")
        path.parent.mkdir(parents=True)
        path.write_bytes(b"x")

        assert enumerator.paths_for("abcd") == [path]

    def test_no_derivative_directory(self, tmp_path: Path):
        """Resources without derivatives yield nothing."""
        assert DerivativePathEnumerator(tmp_path).paths_for("zzzz99") == []
