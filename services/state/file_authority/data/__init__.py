"""Data-layer exports for File Authority Service."""

from services.state.file_authority.data.repository import SqlFileRepository
from services.state.file_authority.data.schema import (
    UNIQUE_CONSTRAINTS,
    file_tags,
    files,
    metadata,
)

__all__ = [
    "UNIQUE_CONSTRAINTS",
    "SqlFileRepository",
    "file_tags",
    "files",
    "metadata",
]
