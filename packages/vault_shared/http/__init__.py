"""Shared HTTP server helpers for file vault runtimes."""

from .errors import (
    HttpError,
    HttpServerError,
    InvalidBodyError,
    InvalidJsonBodyError,
    MissingHeaderError,
)
from .server import (
    create_app,
    get_header,
    parse_json_text,
    run_app,
)

__all__ = [
    "HttpError",
    "HttpServerError",
    "InvalidBodyError",
    "InvalidJsonBodyError",
    "MissingHeaderError",
    "create_app",
    "get_header",
    "parse_json_text",
    "run_app",
]
