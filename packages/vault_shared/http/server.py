"""Minimal FastAPI and uvicorn helpers shared by HTTP runtimes."""

from __future__ import annotations

import json
from typing import Any

import uvicorn
from fastapi import FastAPI, Request

from .errors import InvalidJsonBodyError, MissingHeaderError


def create_app(*, title: str = "filevault", version: str = "0.0.0") -> FastAPI:
    """Create a FastAPI app with project defaults."""
    return FastAPI(title=title, version=version)


def run_app(
    app: FastAPI,
    *,
    host: str = "127.0.0.1",
    port: int = 8080,
    log_level: str = "info",
) -> None:
    """Run one FastAPI app through uvicorn."""
    uvicorn.run(app, host=host, port=port, log_level=log_level)


def get_header(
    request: Request,
    name: str,
    *,
    required: bool = True,
    strip: bool = True,
) -> str | None:
    """Fetch one header value and optionally enforce presence."""
    value = request.headers.get(name)
    if value is None:
        if required:
            raise MissingHeaderError(
                message=f"Missing required header: {name}",
                header_name=name,
            )
        return None

    if strip:
        value = value.strip()
    if required and value == "":
        raise MissingHeaderError(
            message=f"Missing required header: {name}",
            header_name=name,
        )
    return value


def parse_json_text(raw: str | bytes, *, field_name: str = "body") -> Any:
    """Decode one JSON document received as a body or form field."""
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise InvalidJsonBodyError(message=f"{field_name} is not valid JSON") from exc
