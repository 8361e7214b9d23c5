"""Driver error inspection for uniqueness violations.

Callers receive a structured ``UniqueConstraintViolation`` instead of raw
driver text. psycopg exposes the violated constraint name through
``diag.constraint_name``; SQLite only reports the offending column list, so
that list is matched against the known constraint column sets.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence

from sqlalchemy.exc import IntegrityError

from packages.vault_shared.errors import UniqueConstraintViolation

UNIQUE_VIOLATION_SQLSTATE = "23505"

_SQLITE_UNIQUE = re.compile(r"UNIQUE constraint failed: (?P<columns>.+)$", re.MULTILINE)


def extract_unique_violation(
    exc: IntegrityError,
    *,
    constraints: Mapping[str, Sequence[str]],
) -> UniqueConstraintViolation | None:
    """Return the uniqueness violation carried by ``exc``, if any.

    ``constraints`` maps constraint names to their column tuples. A unique
    violation that matches none of them yields a violation with an empty
    constraint name; any other integrity error yields ``None``.
    """
    orig = exc.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate is not None:
        if sqlstate != UNIQUE_VIOLATION_SQLSTATE:
            return None
        diag = getattr(orig, "diag", None)
        name = getattr(diag, "constraint_name", None) or ""
        return UniqueConstraintViolation(
            constraint_name=name,
            conflicting_fields=tuple(constraints.get(name, ())),
        )

    match = _SQLITE_UNIQUE.search(str(orig))
    if match is None:
        return None
    columns = tuple(
        column.strip().rpartition(".")[2]
        for column in match.group("columns").split(",")
    )
    for name, constraint_columns in constraints.items():
        if tuple(constraint_columns) == columns:
            return UniqueConstraintViolation(
                constraint_name=name, conflicting_fields=columns
            )
    return UniqueConstraintViolation(constraint_name="", conflicting_fields=columns)
