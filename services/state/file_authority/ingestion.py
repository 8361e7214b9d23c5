"""Streaming upload ingestion: content sniffing, hashing, and blob writes.

The pipeline reads a bounded look-ahead prefix for content-type detection,
then replays that prefix followed by the remaining stream through a digest
accumulator straight into the blob store. At most one look-ahead window plus
one chunk is held in memory at any time.
"""

from __future__ import annotations

import codecs
import hashlib
from collections.abc import Callable, Iterable, Iterator
from functools import partial
from typing import Any, BinaryIO

import filetype

from packages.vault_shared.errors import (
    ConfigError,
    InvalidArgumentError,
    StorageIOError,
    VaultError,
)
from packages.vault_shared.logging import get_logger
from services.state.file_authority.config import FileAuthoritySettings
from services.state.file_authority.domain import StorageResult
from services.state.file_authority.interfaces import BlobStore

_LOGGER = get_logger(__name__)

OCTET_STREAM = "application/octet-stream"
TEXT_PLAIN = "text/plain"
DIGEST_SIZE_BYTES = 32


def resolve_digest_factory(algorithm: str) -> Callable[[], Any]:
    """Return a constructor for one 256-bit ``hashlib`` digest.

    Raises ``ConfigError`` when the interpreter cannot provide the algorithm;
    this happens once at construction, never per request.
    """
    try:
        probe = hashlib.new(algorithm)
    except (ValueError, TypeError) as exc:
        raise ConfigError(
            f"digest algorithm {algorithm!r} is not available",
            metadata={"digest_algorithm": algorithm},
        ) from exc
    if probe.digest_size != DIGEST_SIZE_BYTES:
        raise ConfigError(
            f"digest algorithm {algorithm!r} must produce a 256-bit digest",
            metadata={"digest_algorithm": algorithm},
        )
    return partial(hashlib.new, algorithm)


def sniff_content_type(prefix: bytes) -> str:
    """Detect a media type from leading content bytes.

    Magic-number matches win; otherwise NUL-free prefixes that decode as UTF-8
    are plain text, and everything else is generic binary.
    """
    if not prefix:
        return OCTET_STREAM
    guessed = filetype.guess_mime(prefix)
    if guessed:
        return guessed
    if b"\x00" in prefix:
        return OCTET_STREAM
    decoder = codecs.getincrementaldecoder("utf-8")()
    try:
        # final=False tolerates a multi-byte sequence cut by the window edge.
        decoder.decode(prefix, final=False)
    except UnicodeDecodeError:
        return OCTET_STREAM
    return TEXT_PLAIN


class _Tally:
    """Running byte count for one streamed upload."""

    __slots__ = ("size",)

    def __init__(self) -> None:
        self.size = 0


class ContentIngestionPipeline:
    """Stream one upload into the blob store while hashing and measuring it."""

    def __init__(
        self,
        *,
        blob_store: BlobStore,
        settings: FileAuthoritySettings,
    ) -> None:
        self._blob_store = blob_store
        self._settings = settings
        self._new_digest = resolve_digest_factory(settings.digest_algorithm)

    def ingest(
        self,
        *,
        owner_id: str,
        stream: BinaryIO,
        declared_size: int | None = None,
    ) -> StorageResult:
        """Write ``stream`` to the blob store and describe what was stored.

        Empty content, content above the configured maximum, and content whose
        length differs from ``declared_size`` are rejected with
        ``InvalidArgumentError``; no blob survives a rejection. Read and write
        failures surface as ``StorageIOError``.
        """
        try:
            prefix = _read_prefix(stream, self._settings.lookahead_bytes)
        except OSError as exc:
            raise StorageIOError("Failed to read upload stream") from exc
        content_type = sniff_content_type(prefix)

        digest = self._new_digest()
        tally = _Tally()
        remainder = iter(partial(stream.read, self._settings.chunk_size_bytes), b"")
        try:
            handle = self._blob_store.put_blob(
                owner_hint=owner_id,
                chunks=self._metered(_chain(prefix, remainder), digest, tally),
            )
        except VaultError:
            raise
        except OSError as exc:
            raise StorageIOError("Failed to write upload to blob store") from exc

        if tally.size == 0:
            self._discard(handle)
            raise InvalidArgumentError("File is empty")
        if declared_size is not None and declared_size != tally.size:
            self._discard(handle)
            raise InvalidArgumentError(
                f"Declared size {declared_size} does not match "
                f"received {tally.size} bytes"
            )

        return StorageResult(
            blob_handle=handle,
            content_hash=digest.hexdigest(),
            content_type=content_type,
            size=tally.size,
        )

    def _metered(
        self,
        chunks: Iterable[bytes],
        digest: Any,
        tally: _Tally,
    ) -> Iterator[bytes]:
        """Yield chunks unchanged while updating digest and size."""
        limit = self._settings.max_upload_size_bytes
        for chunk in chunks:
            if not chunk:
                continue
            tally.size += len(chunk)
            if tally.size > limit:
                raise InvalidArgumentError(
                    f"File exceeds the maximum upload size of {limit} bytes"
                )
            digest.update(chunk)
            yield chunk

    def _discard(self, handle: str) -> None:
        """Best-effort removal of a blob written for a rejected upload."""
        try:
            self._blob_store.delete_blob(handle=handle)
        except Exception as exc:  # noqa: BLE001
            _LOGGER.warning(
                "Failed to discard rejected upload blob: handle=%s exception_type=%s",
                handle,
                type(exc).__name__,
                exc_info=exc,
            )


def _read_prefix(stream: BinaryIO, limit: int) -> bytes:
    """Read up to ``limit`` bytes, tolerating short reads."""
    buffer = bytearray()
    while len(buffer) < limit:
        chunk = stream.read(limit - len(buffer))
        if not chunk:
            break
        buffer.extend(chunk)
    return bytes(buffer)


def _chain(prefix: bytes, remainder: Iterator[bytes]) -> Iterator[bytes]:
    """Replay the look-ahead prefix ahead of the unread stream."""
    if prefix:
        yield prefix
    yield from remainder
