"""Public shared error API for file vault services."""

from . import codes
from .exceptions import (
    ConfigError,
    ConflictError,
    InvalidArgumentError,
    NotFoundError,
    StorageIOError,
    UnauthorizedError,
    UniqueConstraintViolation,
    VaultError,
)
from .factories import dependency_error, internal_error, validation_error
from .normalize import exception_to_error
from .types import ErrorCategory, ErrorDetail

__all__ = [
    "ConfigError",
    "ConflictError",
    "ErrorCategory",
    "ErrorDetail",
    "InvalidArgumentError",
    "NotFoundError",
    "StorageIOError",
    "UnauthorizedError",
    "UniqueConstraintViolation",
    "VaultError",
    "codes",
    "dependency_error",
    "exception_to_error",
    "internal_error",
    "validation_error",
]
