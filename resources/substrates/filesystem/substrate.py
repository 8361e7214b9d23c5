"""Transport-agnostic protocol for filesystem blob substrate operations."""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path
from typing import BinaryIO, Protocol

from pydantic import BaseModel, ConfigDict


class FilesystemHealthStatus(BaseModel):
    """Filesystem blob substrate readiness payload."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    ready: bool
    detail: str


class FilesystemBlobSubstrate(Protocol):
    """Protocol for handle-keyed streaming blob persistence."""

    def health(self) -> FilesystemHealthStatus:
        """Probe local filesystem substrate readiness."""

    def resolve_path(self, *, handle: str) -> Path:
        """Resolve the deterministic file path for one handle."""

    def put_blob(self, *, owner_hint: str, chunks: Iterable[bytes]) -> str:
        """Stream chunks into a new blob and return its handle."""

    def open_blob(self, *, handle: str) -> tuple[BinaryIO, int]:
        """Open one blob for reading and return the stream with its length."""

    def delete_blob(self, *, handle: str) -> bool:
        """Delete one blob and return whether a file existed."""
