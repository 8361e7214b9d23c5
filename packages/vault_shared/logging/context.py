"""Structured logging context carried across one request.

Fields bound here are attached to every record emitted on the same thread or
task, so request-scoped values such as the calling owner need not be repeated
at each log callsite.
"""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Mapping

_LOG_CONTEXT: ContextVar[dict[str, str]] = ContextVar("vault_log_context", default={})


def get_context() -> dict[str, str]:
    """Return a copy of the fields bound in the current context."""
    return dict(_LOG_CONTEXT.get())


def bind_context(**values: object) -> None:
    """Bind stringified values into the current context, skipping ``None``."""
    if not values:
        return
    merged = {**_LOG_CONTEXT.get(), **_stringify(values)}
    _LOG_CONTEXT.set(merged)


def clear_context(*keys: str) -> None:
    """Drop selected keys, or every key when none are named."""
    if not keys:
        _LOG_CONTEXT.set({})
        return
    _LOG_CONTEXT.set(
        {key: value for key, value in _LOG_CONTEXT.get().items() if key not in keys}
    )


@contextmanager
def log_context(values: Mapping[str, object]) -> Iterator[None]:
    """Bind fields for the duration of a block and restore on exit."""
    token = _LOG_CONTEXT.set({**_LOG_CONTEXT.get(), **_stringify(values)})
    try:
        yield
    finally:
        _LOG_CONTEXT.reset(token)


def _stringify(values: Mapping[str, object]) -> dict[str, str]:
    """Render context values as strings for a stable log shape."""
    return {str(key): str(value) for key, value in values.items() if value is not None}
