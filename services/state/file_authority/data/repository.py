"""Authoritative SQL repository for File Authority Service metadata."""

from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import (
    ColumnElement,
    delete,
    exists,
    func,
    insert,
    select,
    update,
)
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from packages.vault_shared.errors import StorageIOError
from resources.substrates.postgres import (
    extract_unique_violation,
    transactional_session,
)
from services.state.file_authority.domain import (
    FileQuery,
    FileRecord,
    SortField,
    Visibility,
)
from services.state.file_authority.interfaces import FileRepository

from .schema import UNIQUE_CONSTRAINTS, file_tags, files

_SORT_COLUMNS = {
    SortField.ORIGINAL_FILENAME: files.c.original_filename,
    SortField.UPLOAD_DATE: files.c.upload_date,
    SortField.CONTENT_TYPE: files.c.content_type,
    SortField.SIZE: files.c.size_bytes,
}


class SqlFileRepository(FileRepository):
    """SQL repository over the ``files`` and ``file_tags`` tables."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._sessions = session_factory

    def insert_file(self, *, record: FileRecord) -> FileRecord:
        """Insert one record and its tags in a single transaction."""
        with self._session(operation="insert_file") as session:
            session.execute(insert(files).values(**_to_row(record)))
            if record.tags:
                session.execute(
                    insert(file_tags),
                    [{"file_id": record.id, "tag": tag} for tag in record.tags],
                )
        return record

    def get_by_id(self, *, file_id: str) -> FileRecord | None:
        """Read one record by primary key."""
        with self._session(operation="get_by_id") as session:
            return self._one(session, files.c.id == file_id)

    def get_by_token(self, *, download_token: str) -> FileRecord | None:
        """Read one record by download token."""
        with self._session(operation="get_by_token") as session:
            return self._one(session, files.c.download_token == download_token)

    def exists_by_owner_and_filename(self, *, owner_id: str, filename: str) -> bool:
        """Return whether one owner already stores ``filename``."""
        with self._session(operation="exists_by_owner_and_filename") as session:
            found = session.execute(
                select(files.c.id)
                .where(
                    files.c.owner_id == owner_id,
                    files.c.original_filename == filename,
                )
                .limit(1)
            ).scalar_one_or_none()
            return found is not None

    def query_files(self, *, query: FileQuery) -> tuple[list[FileRecord], int]:
        """Return one sorted page of matching records and the total match count."""
        conditions = _conditions(query)
        with self._session(operation="query_files") as session:
            total = session.execute(
                select(func.count()).select_from(files).where(*conditions)
            ).scalar_one()
            rows = (
                session.execute(
                    select(files)
                    .where(*conditions)
                    .order_by(*_order_by(query))
                    .offset(query.offset)
                    .limit(query.size)
                )
                .mappings()
                .all()
            )
            tags = _load_tags(session, [str(row["id"]) for row in rows])
            records = [_to_record(row, tags.get(str(row["id"]), ())) for row in rows]
            return records, int(total)

    def update_filename(self, *, file_id: str, new_filename: str) -> int:
        """Rename one record and return the modified row count."""
        with self._session(operation="update_filename") as session:
            result = session.execute(
                update(files)
                .where(files.c.id == file_id)
                .values(original_filename=new_filename)
            )
            return int(result.rowcount or 0)

    def delete_file(self, *, file_id: str) -> bool:
        """Delete one record and its tags; return whether the record existed."""
        with self._session(operation="delete_file") as session:
            session.execute(delete(file_tags).where(file_tags.c.file_id == file_id))
            result = session.execute(delete(files).where(files.c.id == file_id))
            return int(result.rowcount or 0) > 0

    @contextmanager
    def _session(self, *, operation: str) -> Iterator[Session]:
        """Yield one transactional session and translate driver failures."""
        try:
            with transactional_session(self._sessions) as session:
                yield session
        except IntegrityError as exc:
            violation = extract_unique_violation(exc, constraints=UNIQUE_CONSTRAINTS)
            if violation is not None:
                raise violation from exc
            raise StorageIOError(
                f"{operation} violated a metadata constraint",
                metadata={"operation": operation},
            ) from exc
        except SQLAlchemyError as exc:
            raise StorageIOError(
                f"{operation} failed", metadata={"operation": operation}
            ) from exc

    def _one(
        self, session: Session, condition: ColumnElement[bool]
    ) -> FileRecord | None:
        """Load at most one record matching ``condition`` with its tags."""
        row = session.execute(select(files).where(condition)).mappings().one_or_none()
        if row is None:
            return None
        tags = _load_tags(session, [str(row["id"])])
        return _to_record(row, tags.get(str(row["id"]), ()))


def _conditions(query: FileQuery) -> list[ColumnElement[bool]]:
    """Translate owner/public scope and tag membership into SQL predicates."""
    conditions: list[ColumnElement[bool]] = []
    if query.owner_id is not None:
        conditions.append(files.c.owner_id == query.owner_id)
    else:
        conditions.append(files.c.visibility == Visibility.PUBLIC.value)
    if query.tag is not None:
        conditions.append(
            exists().where(
                file_tags.c.file_id == files.c.id,
                file_tags.c.tag == query.tag,
            )
        )
    return conditions


def _order_by(query: FileQuery) -> list[Any]:
    """Return ORDER BY clauses with ``id`` as the deterministic tie-breaker.

    Tag sorting follows array-sort semantics: ascending orders by each file's
    smallest tag, descending by its largest, and untagged files sort lowest.
    """
    if query.sort_field is SortField.TAGS:
        aggregate = func.max if query.descending else func.min
        key = (
            select(aggregate(file_tags.c.tag))
            .where(file_tags.c.file_id == files.c.id)
            .scalar_subquery()
        )
        primary = (
            key.desc().nulls_last() if query.descending else key.asc().nulls_first()
        )
    else:
        column = _SORT_COLUMNS[query.sort_field]
        primary = column.desc() if query.descending else column.asc()
    tie_breaker = files.c.id.desc() if query.descending else files.c.id.asc()
    return [primary, tie_breaker]


def _load_tags(session: Session, file_ids: Sequence[str]) -> dict[str, tuple[str, ...]]:
    """Load sorted tag tuples for many files in one query."""
    if not file_ids:
        return {}
    grouped: dict[str, list[str]] = {}
    result = session.execute(
        select(file_tags.c.file_id, file_tags.c.tag)
        .where(file_tags.c.file_id.in_(list(file_ids)))
        .order_by(file_tags.c.file_id, file_tags.c.tag)
    )
    for file_id, tag in result:
        grouped.setdefault(str(file_id), []).append(str(tag))
    return {file_id: tuple(values) for file_id, values in grouped.items()}


def _to_row(record: FileRecord) -> dict[str, Any]:
    """Map one domain record onto ``files`` column values."""
    return {
        "id": record.id,
        "owner_id": record.owner_id,
        "original_filename": record.original_filename,
        "visibility": record.visibility.value,
        "tag_count": len(record.tags),
        "upload_date": record.upload_date,
        "content_type": record.content_type,
        "size_bytes": record.size,
        "content_hash": record.content_hash,
        "download_token": record.download_token,
        "blob_handle": record.blob_handle,
    }


def _to_record(row: Mapping[str, Any], tags: tuple[str, ...]) -> FileRecord:
    """Map one SQL row to a strict domain record."""
    owner_id = row["owner_id"]
    return FileRecord(
        id=str(row["id"]),
        owner_id=None if owner_id is None else str(owner_id),
        original_filename=str(row["original_filename"]),
        visibility=Visibility(str(row["visibility"])),
        tags=tags,
        upload_date=_row_dt(row, "upload_date"),
        content_type=str(row["content_type"]),
        size=int(row["size_bytes"]),
        content_hash=str(row["content_hash"]),
        download_token=str(row["download_token"]),
        blob_handle=str(row["blob_handle"]),
    )


def _row_dt(row: Mapping[str, Any], column: str) -> datetime:
    """Read one datetime column and normalize it to UTC-aware form."""
    value = row.get(column)
    if not isinstance(value, datetime):
        raise ValueError(f"expected datetime column for {column}")
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)
