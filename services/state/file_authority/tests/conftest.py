"""Shared in-memory collaborators for File Authority Service tests."""

from __future__ import annotations

import io
import threading
from collections.abc import Iterable
from itertools import count
from typing import BinaryIO

import pytest

from packages.vault_shared.errors import UniqueConstraintViolation
from services.state.file_authority.config import FileAuthoritySettings
from services.state.file_authority.domain import (
    FileQuery,
    FileRecord,
    SortField,
    UQ_DOWNLOAD_TOKEN,
    UQ_OWNER_CONTENT_HASH,
    UQ_OWNER_FILENAME,
    Visibility,
)
from services.state.file_authority.implementation import DefaultFileAuthorityService


class FakeBlobStore:
    """Dictionary-backed blob store with call recording."""

    def __init__(self) -> None:
        self.blobs: dict[str, bytes] = {}
        self.deleted: list[str] = []
        self.fail_delete = False
        self.fail_open = False
        self._ids = count(1)
        self._lock = threading.Lock()

    def put_blob(self, *, owner_hint: str, chunks: Iterable[bytes]) -> str:
        buffer = bytearray()
        for chunk in chunks:
            buffer.extend(chunk)
        with self._lock:
            handle = f"{owner_hint}.{next(self._ids):026d}"
            self.blobs[handle] = bytes(buffer)
        return handle

    def open_blob(self, *, handle: str) -> tuple[BinaryIO, int]:
        if self.fail_open:
            raise OSError("disk unavailable")
        if handle not in self.blobs:
            raise FileNotFoundError(handle)
        data = self.blobs[handle]
        return io.BytesIO(data), len(data)

    def delete_blob(self, *, handle: str) -> bool:
        if self.fail_delete:
            raise OSError("disk unavailable")
        with self._lock:
            self.deleted.append(handle)
            return self.blobs.pop(handle, None) is not None


class FakeRepository:
    """In-memory repository enforcing the three metadata uniqueness rules."""

    def __init__(self) -> None:
        self.records: dict[str, FileRecord] = {}
        self.calls: list[str] = []
        self._lock = threading.Lock()

    def insert_file(self, *, record: FileRecord) -> FileRecord:
        with self._lock:
            self.calls.append("insert_file")
            for existing in self.records.values():
                if (
                    existing.owner_id == record.owner_id
                    and existing.original_filename == record.original_filename
                ):
                    raise UniqueConstraintViolation(constraint_name=UQ_OWNER_FILENAME)
                if (
                    existing.owner_id == record.owner_id
                    and existing.content_hash == record.content_hash
                ):
                    raise UniqueConstraintViolation(
                        constraint_name=UQ_OWNER_CONTENT_HASH
                    )
                if existing.download_token == record.download_token:
                    raise UniqueConstraintViolation(constraint_name=UQ_DOWNLOAD_TOKEN)
            self.records[record.id] = record
            return record

    def get_by_id(self, *, file_id: str) -> FileRecord | None:
        self.calls.append("get_by_id")
        return self.records.get(file_id)

    def get_by_token(self, *, download_token: str) -> FileRecord | None:
        self.calls.append("get_by_token")
        for record in self.records.values():
            if record.download_token == download_token:
                return record
        return None

    def exists_by_owner_and_filename(self, *, owner_id: str, filename: str) -> bool:
        self.calls.append("exists_by_owner_and_filename")
        return any(
            record.owner_id == owner_id and record.original_filename == filename
            for record in self.records.values()
        )

    def query_files(self, *, query: FileQuery) -> tuple[list[FileRecord], int]:
        self.calls.append("query_files")
        matches = [
            record
            for record in self.records.values()
            if (
                record.owner_id == query.owner_id
                if query.owner_id is not None
                else record.visibility is Visibility.PUBLIC
            )
            and (query.tag is None or query.tag in record.tags)
        ]
        attribute = {
            SortField.ORIGINAL_FILENAME: "original_filename",
            SortField.UPLOAD_DATE: "upload_date",
            SortField.CONTENT_TYPE: "content_type",
            SortField.SIZE: "size",
            SortField.TAGS: "tags",
        }[query.sort_field]
        matches.sort(
            key=lambda record: (getattr(record, attribute), record.id),
            reverse=query.descending,
        )
        return matches[query.offset : query.offset + query.size], len(matches)

    def update_filename(self, *, file_id: str, new_filename: str) -> int:
        with self._lock:
            self.calls.append("update_filename")
            current = self.records.get(file_id)
            if current is None:
                return 0
            for existing in self.records.values():
                if (
                    existing.id != file_id
                    and existing.owner_id == current.owner_id
                    and existing.original_filename == new_filename
                ):
                    raise UniqueConstraintViolation(constraint_name=UQ_OWNER_FILENAME)
            self.records[file_id] = current.model_copy(
                update={"original_filename": new_filename}
            )
            return 1

    def delete_file(self, *, file_id: str) -> bool:
        with self._lock:
            self.calls.append("delete_file")
            return self.records.pop(file_id, None) is not None


@pytest.fixture()
def blob_store() -> FakeBlobStore:
    """Provide an empty in-memory blob store."""
    return FakeBlobStore()


@pytest.fixture()
def repository() -> FakeRepository:
    """Provide an empty in-memory metadata repository."""
    return FakeRepository()


@pytest.fixture()
def settings() -> FileAuthoritySettings:
    """Provide default service settings."""
    return FileAuthoritySettings()


@pytest.fixture()
def service(
    settings: FileAuthoritySettings,
    repository: FakeRepository,
    blob_store: FakeBlobStore,
) -> DefaultFileAuthorityService:
    """Provide a service wired to in-memory collaborators."""
    return DefaultFileAuthorityService(
        settings=settings, repository=repository, blob_store=blob_store
    )
