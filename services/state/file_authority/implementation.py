"""Concrete File Authority Service implementation.

Uniqueness of ``(owner, filename)``, ``(owner, content hash)`` and download
tokens is decided by the metadata repository at write time. The filename
pre-check only avoids a wasted blob write in the uncontended case; a racing
upload that passes it is still rejected by the repository insert, after which
the freshly written blob is removed.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import UTC, datetime
from typing import BinaryIO

from packages.vault_shared.errors import (
    ConflictError,
    InvalidArgumentError,
    NotFoundError,
    StorageIOError,
    UnauthorizedError,
    UniqueConstraintViolation,
)
from packages.vault_shared.ids import generate_download_token, generate_ulid_str
from packages.vault_shared.logging import get_logger, public_api_instrumented
from services.state.file_authority.component import SERVICE_COMPONENT_ID
from services.state.file_authority.config import FileAuthoritySettings
from services.state.file_authority.domain import (
    DownloadDescriptor,
    FilePage,
    FileQuery,
    FileRecord,
    UQ_OWNER_CONTENT_HASH,
    UQ_OWNER_FILENAME,
    Visibility,
)
from services.state.file_authority.download import (
    content_disposition,
    resolve_media_type,
)
from services.state.file_authority.ingestion import ContentIngestionPipeline
from services.state.file_authority.interfaces import BlobStore, FileRepository
from services.state.file_authority.service import FileAuthorityService
from services.state.file_authority.validation import (
    is_blank,
    is_descending,
    normalize_tags,
    parse_visibility,
    require_owner_id,
    resolve_sort_field,
    validate_filename,
    validate_page,
)

_LOGGER = get_logger(__name__)

GENERIC_CONFLICT_MESSAGE = (
    "A file with this name or content already exists for this user."
)


def filename_conflict_message(filename: str) -> str:
    """Return the conflict message naming a duplicate filename."""
    return f"Filename '{filename}' already exists for this user."


def content_conflict_message(content_hash: str) -> str:
    """Return the conflict message naming a duplicate content hash."""
    return f"Content with hash '{content_hash}' already exists for this user."


class DefaultFileAuthorityService(FileAuthorityService):
    """Default implementation over a blob store and a metadata repository."""

    def __init__(
        self,
        *,
        settings: FileAuthoritySettings,
        repository: FileRepository,
        blob_store: BlobStore,
    ) -> None:
        self._settings = settings
        self._repository = repository
        self._blob_store = blob_store
        self._ingestion = ContentIngestionPipeline(
            blob_store=blob_store, settings=settings
        )

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=SERVICE_COMPONENT_ID,
        id_fields=("filename",),
    )
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
        owner = require_owner_id(owner_id)
        if declared_size is not None and declared_size <= 0:
            raise InvalidArgumentError("File is empty")
        normalized_tags = normalize_tags(tags, max_tags=self._settings.max_tags)
        resolved_visibility = parse_visibility(visibility)
        effective_filename = validate_filename(
            source_filename if is_blank(filename) else filename
        )

        if self._settings.filename_precheck and (
            self._repository.exists_by_owner_and_filename(
                owner_id=owner, filename=effective_filename
            )
        ):
            raise ConflictError(
                filename_conflict_message(effective_filename),
                metadata={"constraint": UQ_OWNER_FILENAME},
            )

        stored = self._ingestion.ingest(
            owner_id=owner, stream=stream, declared_size=declared_size
        )
        record = FileRecord(
            id=generate_ulid_str(),
            owner_id=owner,
            original_filename=effective_filename,
            visibility=resolved_visibility,
            tags=normalized_tags,
            upload_date=datetime.now(UTC),
            content_type=stored.content_type,
            size=stored.size,
            content_hash=stored.content_hash,
            download_token=generate_download_token(),
            blob_handle=stored.blob_handle,
        )

        try:
            return self._repository.insert_file(record=record)
        except UniqueConstraintViolation as violation:
            self._cleanup_orphaned_blob(handle=record.blob_handle)
            raise _classify_conflict(violation=violation, record=record) from violation
        except Exception as exc:  # noqa: BLE001
            self._cleanup_orphaned_blob(handle=record.blob_handle)
            if isinstance(exc, StorageIOError):
                raise
            raise StorageIOError("Failed to persist file metadata") from exc

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=SERVICE_COMPONENT_ID,
        id_fields=("tag", "sort_by"),
    )
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
        sort_field = resolve_sort_field(sort_by)
        page_size = self._settings.default_page_size if size is None else size
        validate_page(
            page=page, size=page_size, max_page_size=self._settings.max_page_size
        )

        query = FileQuery(
            owner_id=None if is_blank(owner_id) else owner_id,
            tag=None if tag is None or is_blank(tag) else tag.strip().lower(),
            sort_field=sort_field,
            descending=is_descending(sort_dir),
            page=page,
            size=page_size,
        )
        items, total = self._repository.query_files(query=query)
        return FilePage(
            items=tuple(items),
            page_number=page,
            page_size=page_size,
            total_elements=total,
        )

    @public_api_instrumented(logger=_LOGGER, component_id=SERVICE_COMPONENT_ID)
    def download_file(self, *, token: str) -> DownloadDescriptor:
        """Resolve one download token; possession of the token is the only gate."""
        record = None if is_blank(token) else self._repository.get_by_token(
            download_token=token
        )
        if record is None:
            raise NotFoundError("File not found for the given download token")

        try:
            stream, size = self._blob_store.open_blob(handle=record.blob_handle)
        except (OSError, ValueError) as exc:
            _LOGGER.error(
                "Blob unreadable for stored file: file_id=%s exception_type=%s",
                record.id,
                type(exc).__name__,
            )
            raise StorageIOError(
                f"Failed to retrieve file content for: {record.original_filename}",
                metadata={"file_id": record.id},
            ) from exc

        return DownloadDescriptor(
            record=record,
            stream=stream,
            content_type=resolve_media_type(record.content_type),
            size=size,
            content_disposition=content_disposition(record.original_filename),
        )

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=SERVICE_COMPONENT_ID,
        id_fields=("file_id",),
    )
    def rename_file(
        self, *, owner_id: str, file_id: str, new_filename: str | None
    ) -> FileRecord:
        """Change the display filename; blank or unchanged names are no-ops."""
        owner = require_owner_id(owner_id)
        if new_filename is not None and not is_blank(new_filename):
            validate_filename(new_filename)

        record = self._require_owned_record(owner_id=owner, file_id=file_id)
        if (
            new_filename is None
            or is_blank(new_filename)
            or new_filename == record.original_filename
        ):
            return record

        try:
            modified = self._repository.update_filename(
                file_id=record.id, new_filename=new_filename
            )
        except UniqueConstraintViolation as violation:
            raise ConflictError(
                filename_conflict_message(new_filename),
                metadata={"constraint": violation.constraint_name or UQ_OWNER_FILENAME},
            ) from violation
        if modified == 0:
            raise StorageIOError(
                f"Rename of file {record.id} modified no records",
                metadata={"file_id": record.id},
            )
        return record.model_copy(update={"original_filename": new_filename})

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=SERVICE_COMPONENT_ID,
        id_fields=("file_id",),
    )
    def delete_file(self, *, owner_id: str, file_id: str) -> None:
        """Delete the blob first, then the metadata record."""
        owner = require_owner_id(owner_id)
        record = self._require_owned_record(owner_id=owner, file_id=file_id)

        try:
            existed = self._blob_store.delete_blob(handle=record.blob_handle)
        except (OSError, ValueError) as exc:
            raise StorageIOError(
                f"Failed to delete content for file {record.id}",
                metadata={"file_id": record.id},
            ) from exc
        if not existed:
            _LOGGER.warning(
                "Blob already missing during delete: file_id=%s", record.id
            )

        self._repository.delete_file(file_id=record.id)

    def _require_owned_record(self, *, owner_id: str, file_id: str) -> FileRecord:
        """Load one record and require that ``owner_id`` owns it."""
        record = None if is_blank(file_id) else self._repository.get_by_id(
            file_id=file_id
        )
        if record is None:
            raise NotFoundError(
                f"File not found with id: {file_id}", metadata={"file_id": file_id}
            )
        # Records without an owner are never mutable.
        if record.owner_id is None or record.owner_id != owner_id:
            _LOGGER.warning(
                "Unauthorized mutation attempt: file_id=%s principal=%s",
                file_id,
                owner_id,
            )
            raise UnauthorizedError(
                f"User '{owner_id}' not authorized to modify file: {file_id}",
                metadata={"file_id": file_id},
            )
        return record

    def _cleanup_orphaned_blob(self, *, handle: str) -> None:
        """Best-effort removal of a blob whose metadata insert failed."""
        try:
            self._blob_store.delete_blob(handle=handle)
        except Exception as exc:  # noqa: BLE001
            _LOGGER.warning(
                "Failed to clean orphaned blob: handle=%s exception_type=%s",
                handle,
                type(exc).__name__,
                exc_info=exc,
            )


def _classify_conflict(
    *, violation: UniqueConstraintViolation, record: FileRecord
) -> ConflictError:
    """Translate one uniqueness violation into a caller-facing conflict."""
    metadata = {"constraint": violation.constraint_name}
    if violation.constraint_name == UQ_OWNER_FILENAME:
        return ConflictError(
            filename_conflict_message(record.original_filename), metadata=metadata
        )
    if violation.constraint_name == UQ_OWNER_CONTENT_HASH:
        return ConflictError(
            content_conflict_message(record.content_hash), metadata=metadata
        )
    return ConflictError(GENERIC_CONFLICT_MESSAGE, metadata=metadata)
