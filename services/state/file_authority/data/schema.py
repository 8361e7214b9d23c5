"""SQLAlchemy table definitions owned by File Authority Service."""

from __future__ import annotations

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    MetaData,
    PrimaryKeyConstraint,
    String,
    Table,
    UniqueConstraint,
)

from packages.vault_shared.ids import ULID_LENGTH
from services.state.file_authority.config import MAX_TAGS_PER_FILE
from services.state.file_authority.domain import (
    UQ_DOWNLOAD_TOKEN,
    UQ_OWNER_CONTENT_HASH,
    UQ_OWNER_FILENAME,
)
from services.state.file_authority.validation import (
    MAX_FILENAME_CODE_POINTS,
    MAX_OWNER_ID_LENGTH,
    MAX_TAG_LENGTH,
)

metadata = MetaData()

files = Table(
    "files",
    metadata,
    Column("id", String(ULID_LENGTH), primary_key=True),
    Column("owner_id", String(MAX_OWNER_ID_LENGTH), nullable=False),
    Column("original_filename", String(MAX_FILENAME_CODE_POINTS), nullable=False),
    Column("visibility", String(16), nullable=False),
    Column("tag_count", Integer, nullable=False, default=0),
    Column("upload_date", DateTime(timezone=True), nullable=False),
    Column("content_type", String(255), nullable=False),
    Column("size_bytes", BigInteger, nullable=False),
    Column("content_hash", String(64), nullable=False),
    Column("download_token", String(128), nullable=False),
    Column("blob_handle", String(128), nullable=False),
    UniqueConstraint("owner_id", "original_filename", name=UQ_OWNER_FILENAME),
    UniqueConstraint("owner_id", "content_hash", name=UQ_OWNER_CONTENT_HASH),
    UniqueConstraint("download_token", name=UQ_DOWNLOAD_TOKEN),
    CheckConstraint(
        f"tag_count >= 0 AND tag_count <= {MAX_TAGS_PER_FILE}",
        name="ck_files_tag_count",
    ),
    CheckConstraint("size_bytes > 0", name="ck_files_size_positive"),
    CheckConstraint(
        "visibility IN ('PUBLIC', 'PRIVATE')", name="ck_files_visibility"
    ),
)

file_tags = Table(
    "file_tags",
    metadata,
    Column(
        "file_id",
        String(ULID_LENGTH),
        ForeignKey("files.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("tag", String(MAX_TAG_LENGTH), nullable=False),
    PrimaryKeyConstraint("file_id", "tag", name="pk_file_tags"),
)

UNIQUE_CONSTRAINTS: dict[str, tuple[str, ...]] = {
    UQ_OWNER_FILENAME: ("owner_id", "original_filename"),
    UQ_OWNER_CONTENT_HASH: ("owner_id", "content_hash"),
    UQ_DOWNLOAD_TOKEN: ("download_token",),
}
