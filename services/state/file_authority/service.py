"""Authoritative in-process Python API for File Authority Service."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import BinaryIO

from packages.vault_shared.config import VaultSettings
from services.state.file_authority.domain import (
    DownloadDescriptor,
    FilePage,
    FileRecord,
    Visibility,
)
from services.state.file_authority.interfaces import BlobStore, FileRepository


class FileAuthorityService(ABC):
    """Public API for multi-tenant file upload, listing, and lifecycle."""

    @abstractmethod
    def upload_file(
        self,
        *,
        owner_id: str,
        stream: BinaryIO,
        filename: str | None,
        visibility: Visibility | str | None,
        tags: Sequence[str | None] | None = None,
        source_filename: str | None = None,
        declared_size: int | None = None,
    ) -> FileRecord:
        """Store one upload and return its durable, uniquely keyed record."""

    @abstractmethod
    def list_files(
        self,
        *,
        owner_id: str | None = None,
        tag: str | None = None,
        sort_by: str | None = None,
        sort_dir: str | None = "asc",
        page: int = 0,
        size: int | None = None,
    ) -> FilePage:
        """Return one page of an owner's files, or of all public files."""

    @abstractmethod
    def download_file(self, *, token: str) -> DownloadDescriptor:
        """Resolve one download token to a readable content descriptor."""

    @abstractmethod
    def rename_file(
        self, *, owner_id: str, file_id: str, new_filename: str | None
    ) -> FileRecord:
        """Change the display filename of one owned file."""

    @abstractmethod
    def delete_file(self, *, owner_id: str, file_id: str) -> None:
        """Delete one owned file's content and metadata."""


def build_file_authority_service(
    *,
    settings: VaultSettings,
    repository: FileRepository | None = None,
    blob_store: BlobStore | None = None,
) -> FileAuthorityService:
    """Build the default implementation from typed settings.

    Missing collaborators are constructed from the ``substrate.postgres`` and
    ``substrate.filesystem`` settings.
    """
    from resources.substrates.filesystem import (
        LocalFilesystemBlobSubstrate,
        resolve_filesystem_substrate_settings,
    )
    from services.state.file_authority.config import resolve_file_authority_settings
    from services.state.file_authority.implementation import (
        DefaultFileAuthorityService,
    )

    if repository is None:
        from resources.substrates.postgres import (
            create_postgres_engine,
            create_session_factory,
            resolve_postgres_settings,
        )
        from services.state.file_authority.data import SqlFileRepository

        engine = create_postgres_engine(resolve_postgres_settings(settings))
        repository = SqlFileRepository(create_session_factory(engine))

    if blob_store is None:
        blob_store = LocalFilesystemBlobSubstrate(
            settings=resolve_filesystem_substrate_settings(settings)
        )

    return DefaultFileAuthorityService(
        settings=resolve_file_authority_settings(settings),
        repository=repository,
        blob_store=blob_store,
    )
