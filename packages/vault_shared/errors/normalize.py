"""Exception normalization utilities for shared error contracts."""

from __future__ import annotations

from . import codes
from .exceptions import VaultError
from .factories import dependency_error, internal_error, validation_error
from .types import ErrorDetail


def exception_to_error(exc: Exception) -> ErrorDetail:
    """Normalize a Python exception into a shared ``ErrorDetail``.

    Domain exceptions carry their own category. Anything else is mapped
    conservatively so adapters never leak raw exception types as success.
    """
    if isinstance(exc, VaultError):
        return exc.to_detail()

    metadata = {"exception_type": type(exc).__name__}

    if isinstance(exc, ValueError):
        return validation_error(
            str(exc), code=codes.INVALID_ARGUMENT, metadata=metadata
        )

    if isinstance(exc, (ConnectionError, TimeoutError)):
        return dependency_error(
            str(exc) or "dependency unavailable",
            code=codes.DEPENDENCY_UNAVAILABLE,
            retryable=True,
            metadata=metadata,
        )

    return internal_error(
        "unexpected exception",
        code=codes.UNEXPECTED_EXCEPTION,
        metadata=metadata,
    )
