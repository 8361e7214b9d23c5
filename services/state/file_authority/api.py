"""FastAPI adapter entrypoints for File Authority Service.

Routes translate HTTP requests into native service calls and map the shared
error taxonomy onto status codes. No business rule lives here.
"""

from __future__ import annotations

import time
from collections.abc import Iterator
from datetime import datetime
from http import HTTPStatus
from typing import Any, BinaryIO

from fastapi import APIRouter, FastAPI, Query, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel
from starlette.background import BackgroundTask
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile

from packages.vault_shared.errors import (
    ErrorCategory,
    VaultError,
    codes,
    exception_to_error,
)
from packages.vault_shared.http import (
    HttpServerError,
    InvalidBodyError,
    get_header,
    parse_json_text,
)
from packages.vault_shared.logging import get_logger
from services.state.file_authority.config import FileAuthoritySettings
from services.state.file_authority.domain import FilePage, FileRecord, Visibility
from services.state.file_authority.service import FileAuthorityService

_LOGGER = get_logger(__name__)

FILES_PATH = "/api/v1/files"
USER_ID_HEADER = "X-User-Id"
DOWNLOAD_CHUNK_BYTES = 64 * 1024

_STATUS_BY_CATEGORY = {
    ErrorCategory.VALIDATION: HTTPStatus.BAD_REQUEST,
    ErrorCategory.NOT_FOUND: HTTPStatus.NOT_FOUND,
    ErrorCategory.CONFLICT: HTTPStatus.CONFLICT,
    ErrorCategory.POLICY: HTTPStatus.FORBIDDEN,
    ErrorCategory.DEPENDENCY: HTTPStatus.INTERNAL_SERVER_ERROR,
    ErrorCategory.INTERNAL: HTTPStatus.INTERNAL_SERVER_ERROR,
}


class _CamelModel(BaseModel):
    """Base DTO serialized with camelCase field names."""

    model_config = ConfigDict(
        frozen=True, alias_generator=to_camel, populate_by_name=True
    )


class FileResponse(_CamelModel):
    """Public view of one stored file."""

    id: str
    filename: str
    visibility: Visibility
    tags: list[str]
    upload_date: datetime
    content_type: str
    size: int
    download_link: str


class PagedResponse(_CamelModel):
    """Public view of one listing page."""

    content: list[FileResponse]
    page: int
    size: int
    total_pages: int
    total_elements: int
    last: bool
    first: bool
    number_of_elements: int


class UploadProperties(_CamelModel):
    """JSON ``properties`` part accompanying a multipart upload."""

    filename: str | None = None
    visibility: str | None = None
    tags: list[str | None] | None = None


class RenameRequest(_CamelModel):
    """Body of a rename request."""

    new_filename: str | None = Field(default=None)


def to_file_response(record: FileRecord, *, download_path_prefix: str) -> FileResponse:
    """Map one domain record to its public DTO."""
    return FileResponse(
        id=record.id,
        filename=record.original_filename,
        visibility=record.visibility,
        tags=list(record.tags),
        upload_date=record.upload_date,
        content_type=record.content_type,
        size=record.size,
        download_link=f"{download_path_prefix}{record.download_token}",
    )


def to_paged_response(page: FilePage, *, download_path_prefix: str) -> PagedResponse:
    """Map one domain page to its public DTO."""
    return PagedResponse(
        content=[
            to_file_response(item, download_path_prefix=download_path_prefix)
            for item in page.items
        ],
        page=page.page_number,
        size=page.page_size,
        total_pages=page.total_pages,
        total_elements=page.total_elements,
        last=page.last,
        first=page.first,
        number_of_elements=page.number_of_elements,
    )


def error_body(*, status: HTTPStatus, message: str, code: str) -> dict[str, Any]:
    """Return the canonical JSON error payload."""
    return {
        "timestamp": int(time.time() * 1000),
        "status": status.value,
        "error": status.phrase,
        "message": message,
        "code": code,
    }


def register_routes(
    *,
    app: FastAPI,
    service: FileAuthorityService,
    settings: FileAuthoritySettings,
) -> None:
    """Mount file routes and error mapping onto ``app``."""
    router = APIRouter(prefix=FILES_PATH)
    prefix = settings.download_path_prefix

    def _dump(model: BaseModel) -> Any:
        return model.model_dump(mode="json", by_alias=True)

    @router.post("", status_code=HTTPStatus.CREATED)
    async def upload_file(request: Request) -> JSONResponse:
        owner_id = get_header(request, USER_ID_HEADER)
        form = await request.form()
        try:
            upload = form.get("file")
            if not isinstance(upload, UploadFile):
                raise InvalidBodyError(message="Required part 'file' is not present.")
            properties = await _read_properties(form.get("properties"))
            record = await run_in_threadpool(
                service.upload_file,
                owner_id=owner_id,
                stream=upload.file,
                filename=properties.filename,
                visibility=properties.visibility,
                tags=properties.tags,
                source_filename=upload.filename,
                declared_size=upload.size,
            )
        finally:
            await form.close()

        body = to_file_response(record, download_path_prefix=prefix)
        return JSONResponse(
            status_code=HTTPStatus.CREATED,
            content=_dump(body),
            headers={"Location": body.download_link},
        )

    @router.get("")
    def list_files(
        request: Request,
        tag: str | None = None,
        sort_by: str = Query(default="uploadDate", alias="sortBy"),
        sort_dir: str = Query(default="desc", alias="sortDir"),
        page: int = 0,
        size: int = 10,
    ) -> JSONResponse:
        owner_id = get_header(request, USER_ID_HEADER, required=False) or None
        result = service.list_files(
            owner_id=owner_id,
            tag=tag,
            sort_by=sort_by,
            sort_dir=sort_dir,
            page=page,
            size=size,
        )
        return JSONResponse(
            content=_dump(to_paged_response(result, download_path_prefix=prefix))
        )

    @router.get("/download/{token}")
    def download_file(token: str) -> StreamingResponse:
        descriptor = service.download_file(token=token)
        return StreamingResponse(
            _iter_stream(descriptor.stream),
            media_type=descriptor.content_type,
            headers={
                "Content-Disposition": descriptor.content_disposition,
                "Content-Length": str(descriptor.size),
            },
            background=BackgroundTask(descriptor.stream.close),
        )

    @router.patch("/{file_id}")
    async def rename_file(file_id: str, request: Request) -> JSONResponse:
        owner_id = get_header(request, USER_ID_HEADER)
        payload = _parse_model(
            RenameRequest, parse_json_text(await request.body(), field_name="body")
        )
        record = await run_in_threadpool(
            service.rename_file,
            owner_id=owner_id,
            file_id=file_id,
            new_filename=payload.new_filename,
        )
        return JSONResponse(
            content=_dump(to_file_response(record, download_path_prefix=prefix))
        )

    @router.delete("/{file_id}", status_code=HTTPStatus.NO_CONTENT)
    def delete_file(file_id: str, request: Request) -> Response:
        owner_id = get_header(request, USER_ID_HEADER)
        service.delete_file(owner_id=owner_id, file_id=file_id)
        return Response(status_code=HTTPStatus.NO_CONTENT)

    app.include_router(router)
    app.add_exception_handler(VaultError, _vault_error_handler)
    app.add_exception_handler(HttpServerError, _http_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(Exception, _unexpected_error_handler)


async def _read_properties(raw: object) -> UploadProperties:
    """Decode the ``properties`` part sent as a form field or a JSON file part."""
    if raw is None:
        raise InvalidBodyError(message="Required part 'properties' is not present.")
    if isinstance(raw, UploadFile):
        raw = await raw.read()
    return _parse_model(
        UploadProperties, parse_json_text(raw, field_name="properties")
    )


def _parse_model(model: type[_CamelModel], data: Any) -> Any:
    """Validate one decoded JSON document against a request DTO."""
    if not isinstance(data, dict):
        raise InvalidBodyError(message=f"{model.__name__} must be a JSON object")
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        first = exc.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        raise InvalidBodyError(message=f"{location}: {first['msg']}") from exc


def _iter_stream(stream: BinaryIO) -> Iterator[bytes]:
    """Yield one blob in chunks and close it once exhausted."""
    try:
        while True:
            chunk = stream.read(DOWNLOAD_CHUNK_BYTES)
            if not chunk:
                break
            yield chunk
    finally:
        stream.close()


async def _vault_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Map domain exceptions onto their HTTP status codes."""
    assert isinstance(exc, VaultError)
    detail = exc.to_detail()
    status = _STATUS_BY_CATEGORY.get(detail.category, HTTPStatus.INTERNAL_SERVER_ERROR)
    if status >= HTTPStatus.INTERNAL_SERVER_ERROR:
        _LOGGER.error(
            "Request failed: path=%s code=%s message=%s",
            request.url.path,
            detail.code,
            detail.message,
        )
    return JSONResponse(
        status_code=status,
        content=error_body(status=status, message=detail.message, code=detail.code),
    )


async def _unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Answer unhandled failures with a 500 that leaks no internals."""
    detail = exception_to_error(exc)
    _LOGGER.error(
        "Unhandled request failure: path=%s exception_type=%s",
        request.url.path,
        type(exc).__name__,
        exc_info=exc,
    )
    status = HTTPStatus.INTERNAL_SERVER_ERROR
    return JSONResponse(
        status_code=status,
        content=error_body(
            status=status, message="Internal server error", code=detail.code
        ),
    )


async def _http_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Map malformed-request errors onto 400 responses."""
    del request
    assert isinstance(exc, HttpServerError)
    status = HTTPStatus.BAD_REQUEST
    return JSONResponse(
        status_code=status,
        content=error_body(
            status=status, message=exc.message, code=codes.INVALID_ARGUMENT
        ),
    )


async def _request_validation_handler(request: Request, exc: Exception) -> JSONResponse:
    """Map FastAPI parameter validation failures onto 400 responses."""
    del request
    assert isinstance(exc, RequestValidationError)
    messages = [
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
        for error in exc.errors()
    ]
    status = HTTPStatus.BAD_REQUEST
    return JSONResponse(
        status_code=status,
        content=error_body(
            status=status,
            message="; ".join(messages) or "Validation failed",
            code=codes.VALIDATION_ERROR,
        ),
    )
