"""Tests for media references and the local media reader."""

from __future__ import annotations

from pathlib import Path

import pytest

from plantsync.client.media import (
    LocalMediaReader,
    MediaError,
    MediaNotFoundError,
    is_local_media,
    is_remote_media,
)


class TestMediaClassification:
    """Tests for is_remote_media / is_local_media."""

    @pytest.mark.parametrize(
        "uri",
        [
            "https://firebasestorage.example/u/1.jpg",
            "http://cdn.example/1.jpg",
            "gs://bucket/users/o/plants/p/user.jpg",
        ],
    )
    def test_remote(self, uri: str) -> None:
        """Remote URLs need no upload."""
        assert is_remote_media(uri)
        assert not is_local_media(uri)

    @pytest.mark.parametrize(
        "uri",
        ["local://tmp/1.jpg", "content://media/42", "file:///tmp/1.jpg", "/tmp/1.jpg"],
    )
    def test_local(self, uri: str) -> None:
        """Device URIs and paths need uploading."""
        assert is_local_media(uri)
        assert not is_remote_media(uri)

    @pytest.mark.parametrize("uri", [None, "", "   "])
    def test_empty(self, uri: str | None) -> None:
        """Empty references are neither local nor remote."""
        assert not is_local_media(uri)
        assert not is_remote_media(uri)


class TestLocalMediaReader:
    """Tests for LocalMediaReader."""

    @pytest.fixture
    def reader(self, tmp_path: Path) -> LocalMediaReader:
        """Reader rooted at a temporary media directory."""
        root = tmp_path / "media"
        (root / "tmp").mkdir(parents=True)
        (root / "tmp" / "1.jpg").write_bytes(b"jpeg-bytes")
        return LocalMediaReader(root)

    def test_resolve_rooted_schemes(self, reader: LocalMediaReader) -> None:
        """local:// and content:// should resolve under the root."""
        assert reader.resolve("local://tmp/1.jpg") == reader.root / "tmp" / "1.jpg"
        assert reader.resolve("content://tmp/1.jpg") == reader.root / "tmp" / "1.jpg"

    def test_resolve_file_uri(self, reader: LocalMediaReader, tmp_path: Path) -> None:
        """file:// URIs should be used as-is."""
        path = tmp_path / "photo.jpg"
        assert reader.resolve(path.as_uri()) == path

    def test_resolve_relative_path(self, reader: LocalMediaReader) -> None:
        """Relative paths should resolve under the root."""
        assert reader.resolve("tmp/1.jpg") == reader.root / "tmp" / "1.jpg"

    def test_resolve_rejects_escape(self, reader: LocalMediaReader) -> None:
        """Should refuse URIs escaping the media root."""
        with pytest.raises(MediaError, match="escapes"):
            reader.resolve("local://tmp/../../secret.txt")

    def test_resolve_rejects_remote(self, reader: LocalMediaReader) -> None:
        """Should refuse remote URLs."""
        with pytest.raises(MediaError):
            reader.resolve("https://cdn.example/1.jpg")

    def test_resolve_rejects_unknown_scheme(self, reader: LocalMediaReader) -> None:
        """Should refuse unsupported schemes."""
        with pytest.raises(MediaError, match="Unsupported"):
            reader.resolve("ftp://host/1.jpg")

    @pytest.mark.asyncio
    async def test_read(self, reader: LocalMediaReader) -> None:
        """Should read the file bytes."""
        assert await reader.read("local://tmp/1.jpg") == b"jpeg-bytes"

    @pytest.mark.asyncio
    async def test_read_missing(self, reader: LocalMediaReader) -> None:
        """Should raise MediaNotFoundError for a missing file."""
        with pytest.raises(MediaNotFoundError):
            await reader.read("local://tmp/missing.jpg")

    @pytest.mark.asyncio
    async def test_read_directory(self, reader: LocalMediaReader) -> None:
        """Should raise MediaError for unreadable paths."""
        with pytest.raises(MediaError):
            await reader.read("local://tmp")
