"""Transport-neutral protocol interfaces used by File Authority Service."""

from __future__ import annotations

from collections.abc import Iterable
from typing import BinaryIO, Protocol

from services.state.file_authority.domain import FileQuery, FileRecord


class BlobStore(Protocol):
    """Protocol for streamed binary content storage keyed by opaque handles."""

    def put_blob(self, *, owner_hint: str, chunks: Iterable[bytes]) -> str:
        """Consume ``chunks`` into a new blob and return its handle."""

    def open_blob(self, *, handle: str) -> tuple[BinaryIO, int]:
        """Open one blob; raise ``FileNotFoundError`` when it is absent."""

    def delete_blob(self, *, handle: str) -> bool:
        """Delete one blob; deleting a missing handle returns ``False``."""


class FileRepository(Protocol):
    """Protocol for authoritative file metadata persistence.

    Every write is one atomic store operation. Uniqueness is enforced by the
    store and surfaced as ``UniqueConstraintViolation``.
    """

    def insert_file(self, *, record: FileRecord) -> FileRecord:
        """Insert one record or raise ``UniqueConstraintViolation``."""

    def get_by_id(self, *, file_id: str) -> FileRecord | None:
        """Read one record by id."""

    def get_by_token(self, *, download_token: str) -> FileRecord | None:
        """Read one record by download token."""

    def exists_by_owner_and_filename(self, *, owner_id: str, filename: str) -> bool:
        """Return whether ``owner_id`` already stores ``filename``."""

    def query_files(self, *, query: FileQuery) -> tuple[list[FileRecord], int]:
        """Return one sorted page of matches and the unsliced match count."""

    def update_filename(self, *, file_id: str, new_filename: str) -> int:
        """Rename one record and return the modified row count."""

    def delete_file(self, *, file_id: str) -> bool:
        """Delete one record and return whether it existed."""
