"""Explicit argument validation for File Authority Service operations.

Every function raises ``InvalidArgumentError`` and performs no I/O, so callers
can run them before touching the blob or metadata store.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from packages.vault_shared.errors import InvalidArgumentError
from services.state.file_authority.domain import SortField, Visibility

MAX_FILENAME_CODE_POINTS = 255
MAX_OWNER_ID_LENGTH = 255
MAX_TAG_LENGTH = 255

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")
_FORBIDDEN_CHARS = re.compile(r'[<>:"|?*]')
_PATH_SEPARATORS = ("/", "\\")
_RESERVED_NAMES = frozenset(
    {"CON", "PRN", "AUX", "NUL"}
    | {f"COM{index}" for index in range(1, 10)}
    | {f"LPT{index}" for index in range(1, 10)}
)

_SORT_FIELDS = {
    "filename": SortField.ORIGINAL_FILENAME,
    "uploaddate": SortField.UPLOAD_DATE,
    "contenttype": SortField.CONTENT_TYPE,
    "size": SortField.SIZE,
    "tag": SortField.TAGS,
    "tags": SortField.TAGS,
}


def is_blank(value: str | None) -> bool:
    """Return whether ``value`` is missing or whitespace only."""
    return value is None or value.strip() == ""


def require_owner_id(owner_id: str | None) -> str:
    """Return ``owner_id`` unchanged or reject a missing caller identity."""
    if owner_id is None or is_blank(owner_id):
        raise InvalidArgumentError("ownerId is required")
    if len(owner_id) > MAX_OWNER_ID_LENGTH:
        raise InvalidArgumentError(
            f"ownerId must be at most {MAX_OWNER_ID_LENGTH} characters"
        )
    return owner_id


def validate_filename(value: str | None) -> str:
    """Return ``value`` when it is a safe user-facing filename.

    Rules are checked in a fixed order: presence, control characters, path
    separators, Windows-forbidden characters, reserved device names (compared
    on the part before the last dot), surrounding whitespace, and a limit of
    255 code points.
    """
    if value is None or is_blank(value):
        raise InvalidArgumentError("Filename must not be blank")
    if _CONTROL_CHARS.search(value):
        raise InvalidArgumentError("Filename must not contain control characters")
    if any(separator in value for separator in _PATH_SEPARATORS):
        raise InvalidArgumentError("Filename must not contain path separators")
    if _FORBIDDEN_CHARS.search(value):
        raise InvalidArgumentError(
            'Filename must not contain any of the characters <>:"|?*'
        )
    base_name = value.rpartition(".")[0] if "." in value else value
    if base_name.upper() in _RESERVED_NAMES:
        raise InvalidArgumentError(f"Filename '{value}' is a reserved name")
    if value != value.strip():
        raise InvalidArgumentError(
            "Filename must not have leading or trailing whitespace"
        )
    if len(value) > MAX_FILENAME_CODE_POINTS:
        raise InvalidArgumentError(
            f"Filename must be at most {MAX_FILENAME_CODE_POINTS} characters"
        )
    return value


def normalize_tags(
    tags: Iterable[str | None] | None, *, max_tags: int
) -> tuple[str, ...]:
    """Return the canonical tag set as a sorted tuple.

    Missing and blank entries are dropped; remaining values are trimmed and
    lowercased before de-duplication.
    """
    if tags is None:
        return ()
    if isinstance(tags, str):
        raise InvalidArgumentError("tags must be a list of strings")
    normalized: set[str] = set()
    for tag in tags:
        if tag is None:
            continue
        if not isinstance(tag, str):
            raise InvalidArgumentError("tags must be a list of strings")
        if is_blank(tag):
            continue
        tag = tag.strip().lower()
        if len(tag) > MAX_TAG_LENGTH:
            raise InvalidArgumentError(
                f"Tags must be at most {MAX_TAG_LENGTH} characters"
            )
        normalized.add(tag)
    if len(normalized) > max_tags:
        raise InvalidArgumentError(f"A maximum of {max_tags} tags are allowed")
    return tuple(sorted(normalized))


def parse_visibility(value: Visibility | str | None) -> Visibility:
    """Resolve one visibility value, accepting names case-insensitively."""
    if isinstance(value, Visibility):
        return value
    if value is None or is_blank(value):
        raise InvalidArgumentError("Visibility must be provided")
    try:
        return Visibility(value.strip().upper())
    except ValueError:
        raise InvalidArgumentError(
            f"Invalid visibility: {value}; expected PUBLIC or PRIVATE"
        ) from None


def resolve_sort_field(sort_by: str | None) -> SortField:
    """Map one public sort key onto its storage field."""
    if sort_by is None:
        return SortField.UPLOAD_DATE
    field = _SORT_FIELDS.get(sort_by.lower())
    if field is None:
        raise InvalidArgumentError(f"Invalid sortBy field: {sort_by}")
    return field


def is_descending(sort_dir: str | None) -> bool:
    """Return True only for ``desc`` in any letter case."""
    return sort_dir is not None and sort_dir.lower() == "desc"


def validate_page(*, page: int, size: int, max_page_size: int) -> None:
    """Reject negative page numbers and out-of-range page sizes."""
    if page < 0:
        raise InvalidArgumentError("page must be >= 0")
    if size < 1 or size > max_page_size:
        raise InvalidArgumentError(f"size must be between 1 and {max_page_size}")
