"""Typed exception hierarchy raised by file vault services.

Each exception class pins one ``ErrorCategory`` so adapters can map failures to
transport status codes without inspecting messages.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar, Mapping

from . import codes
from .types import ErrorCategory, ErrorDetail


@dataclass(eq=False)
class VaultError(Exception):
    """Base error type for file vault domain failures."""

    message: str
    code: str = codes.INTERNAL_ERROR
    metadata: Mapping[str, str] = field(default_factory=dict)

    category: ClassVar[ErrorCategory] = ErrorCategory.INTERNAL
    retryable: ClassVar[bool] = False

    def __str__(self) -> str:
        """Return human-readable error message."""
        return self.message

    def to_detail(self) -> ErrorDetail:
        """Convert this exception into a transport-neutral error detail."""
        return ErrorDetail(
            code=self.code,
            message=self.message,
            category=self.category,
            retryable=self.retryable,
            metadata=dict(self.metadata),
        )


@dataclass(eq=False)
class InvalidArgumentError(VaultError):
    """Caller input failed validation; no state was changed."""

    code: str = codes.INVALID_ARGUMENT
    category: ClassVar[ErrorCategory] = ErrorCategory.VALIDATION


@dataclass(eq=False)
class NotFoundError(VaultError):
    """Referenced file id or download token does not exist."""

    code: str = codes.RESOURCE_NOT_FOUND
    category: ClassVar[ErrorCategory] = ErrorCategory.NOT_FOUND


@dataclass(eq=False)
class UnauthorizedError(VaultError):
    """Caller is not the owner of the record it tried to mutate."""

    code: str = codes.PERMISSION_DENIED
    category: ClassVar[ErrorCategory] = ErrorCategory.POLICY


@dataclass(eq=False)
class ConflictError(VaultError):
    """Write rejected by a uniqueness constraint."""

    code: str = codes.ALREADY_EXISTS
    category: ClassVar[ErrorCategory] = ErrorCategory.CONFLICT


@dataclass(eq=False)
class StorageIOError(VaultError):
    """Blob or metadata store failed or returned an inconsistent result."""

    code: str = codes.DEPENDENCY_FAILURE
    category: ClassVar[ErrorCategory] = ErrorCategory.DEPENDENCY


@dataclass(eq=False)
class ConfigError(VaultError):
    """Process configuration is unusable; raised at construction time."""

    code: str = codes.CONFIGURATION_ERROR
    category: ClassVar[ErrorCategory] = ErrorCategory.INTERNAL


@dataclass(eq=False)
class UniqueConstraintViolation(Exception):
    """Metadata store rejected a write because a uniqueness constraint fired.

    This is the structured signal raised by repositories; services translate it
    into a ``ConflictError`` once they know which constraint was violated. An
    empty ``constraint_name`` means the store could not identify the
    constraint.
    """

    constraint_name: str
    conflicting_fields: tuple[str, ...] = ()

    def __str__(self) -> str:
        """Return a compact description of the violated constraint."""
        name = self.constraint_name or "<unknown>"
        return f"unique constraint violated: {name}"
