"""Domain contracts for File Authority Service payloads."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import BinaryIO

from pydantic import BaseModel, ConfigDict

UQ_OWNER_FILENAME = "uq_files_owner_filename"
UQ_OWNER_CONTENT_HASH = "uq_files_owner_content_hash"
UQ_DOWNLOAD_TOKEN = "uq_files_download_token"


class Visibility(str, Enum):
    """Who may see a file in anonymous listings."""

    PUBLIC = "PUBLIC"
    PRIVATE = "PRIVATE"


class SortField(str, Enum):
    """Storage fields a listing may be ordered by."""

    ORIGINAL_FILENAME = "original_filename"
    UPLOAD_DATE = "upload_date"
    CONTENT_TYPE = "content_type"
    SIZE = "size"
    TAGS = "tags"


class FileRecord(BaseModel):
    """Authoritative metadata for one stored file.

    ``owner_id`` is optional only so that rows written without an owner can be
    represented; such rows are never mutable by any caller.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str
    owner_id: str | None
    original_filename: str
    visibility: Visibility
    tags: tuple[str, ...] = ()
    upload_date: datetime
    content_type: str
    size: int
    content_hash: str
    download_token: str
    blob_handle: str


class StorageResult(BaseModel):
    """Outcome of streaming one upload into the blob store."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    blob_handle: str
    content_hash: str
    content_type: str
    size: int


class FileQuery(BaseModel):
    """Validated listing query handed to the metadata repository."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    owner_id: str | None = None
    tag: str | None = None
    sort_field: SortField = SortField.UPLOAD_DATE
    descending: bool = False
    page: int = 0
    size: int = 10

    @property
    def offset(self) -> int:
        """Return the number of rows skipped before this page."""
        return self.page * self.size


class FilePage(BaseModel):
    """One slice of a sorted, filtered listing."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    items: tuple[FileRecord, ...]
    page_number: int
    page_size: int
    total_elements: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_elements / self.page_size) if self.page_size else 0

    @property
    def number_of_elements(self) -> int:
        return len(self.items)

    @property
    def first(self) -> bool:
        return self.page_number == 0

    @property
    def last(self) -> bool:
        return self.page_number + 1 >= self.total_pages


@dataclass(frozen=True)
class DownloadDescriptor:
    """Everything a transport needs to stream one file back to a caller.

    The caller owns ``stream`` and must close it once the body is sent.
    """

    record: FileRecord
    stream: BinaryIO
    content_type: str
    size: int
    content_disposition: str
