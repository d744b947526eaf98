"""Media references and local media access.

A media field holds either a remote URL (already uploaded) or a local-only
device URI that still has to be uploaded before the record can be pushed.

This module provides:
- is_remote_media / is_local_media: classify a media reference
- MediaReader: capability reading the bytes behind a local-only URI
- LocalMediaReader: MediaReader backed by the local filesystem
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Protocol
from urllib.parse import unquote, urlparse

logger = logging.getLogger(__name__)

REMOTE_SCHEMES = frozenset({"http", "https", "gs"})

# Schemes resolved relative to the media root
_ROOTED_SCHEMES = frozenset({"local", "content"})


class MediaError(Exception):
    """Local media could not be read."""


class MediaNotFoundError(MediaError):
    """Local media file does not exist."""


def is_remote_media(uri: str | None) -> bool:
    """Check whether a media reference already points to remote storage."""
    if not uri:
        return False
    return urlparse(uri).scheme.lower() in REMOTE_SCHEMES


def is_local_media(uri: str | None) -> bool:
    """Check whether a media reference is local-only and needs uploading.

    Empty references mean "no media" and are neither local nor remote.
    """
    if not uri or not uri.strip():
        return False
    return not is_remote_media(uri)


class MediaReader(Protocol):
    """Reads the bytes behind a local-only media reference."""

    async def read(self, uri: str) -> bytes:
        """Read media bytes.

        Raises:
            MediaError: If the media cannot be read.
        """
        ...


class LocalMediaReader:
    """MediaReader for files on the local filesystem.

    ``file://`` URIs and plain paths are used as-is. ``local://`` and
    ``content://`` URIs are resolved relative to ``root``.
    """

    def __init__(self, root: Path | str) -> None:
        """Initialize the reader.

        Args:
            root: Directory holding app-private media.
        """
        self._root = Path(root).expanduser().resolve()

    @property
    def root(self) -> Path:
        """Directory holding app-private media."""
        return self._root

    def resolve(self, uri: str) -> Path:
        """Map a local-only URI to a filesystem path.

        Raises:
            MediaError: If the URI is remote or escapes the media root.
        """
        if is_remote_media(uri):
            raise MediaError(f"Not a local media reference: {uri}")

        parsed = urlparse(uri)
        scheme = parsed.scheme.lower()
        if scheme == "file":
            return Path(unquote(parsed.path))
        if scheme in _ROOTED_SCHEMES:
            relative = unquote(parsed.netloc + parsed.path).lstrip("/")
            path = (self._root / relative).resolve()
            if not path.is_relative_to(self._root):
                raise MediaError(f"Media path escapes media root: {uri}")
            return path
        if scheme:
            raise MediaError(f"Unsupported media scheme: {scheme}")

        path = Path(uri).expanduser()
        return path if path.is_absolute() else self._root / path

    async def read(self, uri: str) -> bytes:
        """Read media bytes in a worker thread."""
        path = self.resolve(uri)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError as e:
            raise MediaNotFoundError(f"Media not found: {uri}") from e
        except OSError as e:
            raise MediaError(f"Cannot read media {uri}: {e}") from e
