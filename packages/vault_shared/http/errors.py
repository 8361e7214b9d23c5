"""Typed errors raised while parsing inbound HTTP requests."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(eq=False)
class HttpError(Exception):
    """Base error type for shared HTTP helper failures."""

    message: str

    def __str__(self) -> str:
        """Return the human-readable error message."""
        return self.message


@dataclass(eq=False)
class HttpServerError(HttpError):
    """Base error type for inbound request parsing and validation."""


@dataclass(eq=False)
class MissingHeaderError(HttpServerError):
    """Required inbound HTTP header is missing or blank."""

    header_name: str


@dataclass(eq=False)
class InvalidBodyError(HttpServerError):
    """Inbound body or form field has the wrong shape."""


@dataclass(eq=False)
class InvalidJsonBodyError(InvalidBodyError):
    """Inbound body or form field is not valid JSON."""
