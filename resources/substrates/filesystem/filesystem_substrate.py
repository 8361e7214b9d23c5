"""Filesystem-backed blob substrate with streaming atomic writes.

Handles have the shape ``<owner-segment>.<ulid>`` and map to
``<root>/<owner-segment>/<ulid[-2:]>/<handle>.blob``. Every put allocates a
fresh handle, so a blob is owned by exactly one metadata record even when two
records carry identical bytes.
"""

from __future__ import annotations

import os
import re
from collections.abc import Iterable
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import BinaryIO

from packages.vault_shared.ids import generate_ulid_str, is_ulid_str
from resources.substrates.filesystem.config import FilesystemSubstrateSettings
from resources.substrates.filesystem.substrate import (
    FilesystemBlobSubstrate,
    FilesystemHealthStatus,
)

_BLOB_SUFFIX = "blob"
_OWNER_SEGMENT_MAX = 64
_UNSAFE_SEGMENT = re.compile(r"[^A-Za-z0-9_-]+")
_SEGMENT = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


class LocalFilesystemBlobSubstrate(FilesystemBlobSubstrate):
    """Persist and retrieve blobs on local disk using handle-derived paths."""

    def __init__(self, *, settings: FilesystemSubstrateSettings) -> None:
        self._settings = settings
        self._root = settings.root_path()

    def health(self) -> FilesystemHealthStatus:
        """Return filesystem substrate readiness for root dir access."""
        try:
            self._root.mkdir(parents=True, exist_ok=True)
            if not self._root.is_dir():
                return FilesystemHealthStatus(
                    ready=False,
                    detail=f"root path is not a directory: {self._root}",
                )
            if not os.access(self._root, os.W_OK):
                return FilesystemHealthStatus(
                    ready=False,
                    detail=f"root path is not writable: {self._root}",
                )
        except Exception as exc:  # noqa: BLE001
            return FilesystemHealthStatus(
                ready=False,
                detail=f"filesystem probe failed: {type(exc).__name__}",
            )
        return FilesystemHealthStatus(ready=True, detail="ok")

    def resolve_path(self, *, handle: str) -> Path:
        """Resolve the filesystem path for one validated handle."""
        segment, blob_id = _split_handle(handle)
        return self._root / segment / blob_id[-2:] / f"{handle}.{_BLOB_SUFFIX}"

    def put_blob(self, *, owner_hint: str, chunks: Iterable[bytes]) -> str:
        """Stream ``chunks`` into a new blob atomically and return its handle.

        Bytes land in a temporary file beside the final path and are moved
        into place with ``os.replace`` only after every chunk was written. Any
        failure raised by the chunk iterator or the disk removes the temporary
        file and propagates unchanged.
        """
        handle = f"{_owner_segment(owner_hint)}.{generate_ulid_str()}"
        path = self.resolve_path(handle=handle)

        self._root.mkdir(parents=True, exist_ok=True)
        if not self._root.is_dir():
            raise OSError(f"filesystem substrate root is not a directory: {self._root}")
        path.parent.mkdir(parents=True, exist_ok=True)

        tmp_path: Path | None = None
        try:
            with NamedTemporaryFile(
                mode="wb",
                prefix=f".{self._settings.temp_prefix}-",
                suffix=".tmp",
                dir=path.parent,
                delete=False,
            ) as stream:
                tmp_path = Path(stream.name)
                for chunk in chunks:
                    stream.write(chunk)
                stream.flush()
                if self._settings.fsync_writes:
                    os.fsync(stream.fileno())

            os.replace(tmp_path, path)
            tmp_path = None
            return handle
        finally:
            if tmp_path is not None:
                tmp_path.unlink(missing_ok=True)

    def open_blob(self, *, handle: str) -> tuple[BinaryIO, int]:
        """Open one blob for binary reads; raise ``FileNotFoundError`` if absent."""
        path = self.resolve_path(handle=handle)
        stream = path.open("rb")
        try:
            size = os.fstat(stream.fileno()).st_size
        except OSError:
            stream.close()
            raise
        return stream, size

    def delete_blob(self, *, handle: str) -> bool:
        """Delete one blob path and return whether a file existed."""
        path = self.resolve_path(handle=handle)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        return True


def _owner_segment(owner_hint: str) -> str:
    """Reduce an owner hint to one filesystem-safe directory segment."""
    segment = _UNSAFE_SEGMENT.sub("_", owner_hint.strip())[:_OWNER_SEGMENT_MAX]
    return segment.strip("_") or "anonymous"


def _split_handle(handle: str) -> tuple[str, str]:
    """Validate one handle and return its owner segment and ULID parts."""
    segment, separator, blob_id = handle.partition(".")
    if not separator or not _SEGMENT.match(segment) or not is_ulid_str(blob_id):
        raise ValueError(f"invalid blob handle: {handle!r}")
    return segment, blob_id
