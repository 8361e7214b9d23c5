"""HTTP adapter tests over SQLite metadata and a temporary blob directory."""

from __future__ import annotations

import asyncio
import io
import json
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine

from packages.vault_shared.http import create_app
from resources.substrates.filesystem import (
    FilesystemSubstrateSettings,
    LocalFilesystemBlobSubstrate,
)
from resources.substrates.postgres import create_session_factory
from services.state.file_authority.api import (
    FILES_PATH,
    USER_ID_HEADER,
    register_routes,
)
from services.state.file_authority.config import FileAuthoritySettings
from services.state.file_authority.data import SqlFileRepository, metadata
from services.state.file_authority.domain import DownloadDescriptor
from services.state.file_authority.implementation import DefaultFileAuthorityService


@pytest.fixture()
def client(tmp_path: Path):
    """Serve the file routes over real SQLite and filesystem substrates."""
    engine = create_engine(f"sqlite:///{tmp_path / 'vault.db'}")
    metadata.create_all(engine)
    settings = FileAuthoritySettings()
    service = DefaultFileAuthorityService(
        settings=settings,
        repository=SqlFileRepository(create_session_factory(engine)),
        blob_store=LocalFilesystemBlobSubstrate(
            settings=FilesystemSubstrateSettings(root_dir=str(tmp_path / "blobs"))
        ),
    )
    app = create_app()
    register_routes(app=app, service=service, settings=settings)
    with TestClient(app) as test_client:
        yield test_client
    engine.dispose()


def _upload(
    client: TestClient,
    *,
    owner: str | None = "u1",
    filename: str = "a.txt",
    content: bytes = b"hello",
    properties: dict[str, Any] | None = None,
) -> Any:
    """POST one multipart upload."""
    headers = {} if owner is None else {USER_ID_HEADER: owner}
    props = properties if properties is not None else {"visibility": "PRIVATE"}
    return client.post(
        FILES_PATH,
        headers=headers,
        files={"file": (filename, content, "application/octet-stream")},
        data={"properties": json.dumps(props)},
    )


def test_upload_returns_created_file(client: TestClient) -> None:
    """Uploads answer 201 with the public DTO and a download Location."""
    response = _upload(
        client, properties={"visibility": "public", "tags": ["Work", " work "]}
    )

    assert response.status_code == 201
    body = response.json()
    assert body["filename"] == "a.txt"
    assert body["visibility"] == "PUBLIC"
    assert body["tags"] == ["work"]
    assert body["size"] == 5
    assert body["contentType"] == "text/plain"
    assert body["downloadLink"].startswith("/api/v1/files/download/")
    assert response.headers["location"] == body["downloadLink"]
    assert "uploadDate" in body


def test_upload_accepts_properties_as_file_part(client: TestClient) -> None:
    """Clients may send ``properties`` as a JSON file part."""
    response = client.post(
        FILES_PATH,
        headers={USER_ID_HEADER: "u1"},
        files={
            "file": ("data.bin", b"\x00\x01\x02", "application/octet-stream"),
            "properties": (
                "properties.json",
                json.dumps({"visibility": "PRIVATE", "filename": "renamed.bin"}),
                "application/json",
            ),
        },
    )

    assert response.status_code == 201
    assert response.json()["filename"] == "renamed.bin"
    assert response.json()["contentType"] == "application/octet-stream"


def test_upload_without_owner_header_is_bad_request(client: TestClient) -> None:
    """Mutating routes require the caller identity header."""
    response = _upload(client, owner=None)

    assert response.status_code == 400
    assert response.json()["message"] == "Missing required header: X-User-Id"


def test_upload_without_file_part_is_bad_request(client: TestClient) -> None:
    """The ``file`` part is mandatory."""
    response = client.post(
        FILES_PATH,
        headers={USER_ID_HEADER: "u1"},
        data={"properties": json.dumps({"visibility": "PRIVATE"})},
    )

    assert response.status_code == 400


def test_upload_with_malformed_properties_is_bad_request(client: TestClient) -> None:
    """Unparseable ``properties`` JSON is rejected."""
    response = client.post(
        FILES_PATH,
        headers={USER_ID_HEADER: "u1"},
        files={"file": ("a.txt", b"hello", "text/plain")},
        data={"properties": "{not json"},
    )

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_ARGUMENT"


def test_upload_of_empty_file_is_bad_request(client: TestClient) -> None:
    """Empty uploads map to 400."""
    response = _upload(client, content=b"")

    assert response.status_code == 400
    assert response.json()["message"] == "File is empty"


def test_duplicate_upload_is_conflict(client: TestClient) -> None:
    """Duplicate names and duplicate content both map to 409."""
    assert _upload(client).status_code == 201

    by_name = _upload(client, content=b"other")
    by_content = _upload(client, filename="b.txt")

    assert by_name.status_code == 409
    assert "'a.txt'" in by_name.json()["message"]
    assert by_content.status_code == 409
    assert "Content with hash" in by_content.json()["message"]
    assert by_content.json()["error"] == "Conflict"


def test_list_public_files_without_owner(client: TestClient) -> None:
    """Anonymous listings contain public files only."""
    _upload(
        client,
        filename="pub.txt",
        content=b"1",
        properties={"visibility": "PUBLIC"},
    )
    _upload(client, filename="prv.txt", content=b"2")

    response = client.get(FILES_PATH)

    assert response.status_code == 200
    body = response.json()
    assert [item["filename"] for item in body["content"]] == ["pub.txt"]
    assert body["totalElements"] == 1
    assert body["page"] == 0
    assert body["size"] == 10
    assert body["first"] is True
    assert body["last"] is True
    assert body["numberOfElements"] == 1


def test_list_owner_files_sorted_by_filename(client: TestClient) -> None:
    """Owners see all of their files in the requested order."""
    for name, content in (("b.txt", b"1"), ("a.txt", b"2"), ("c.txt", b"3")):
        _upload(client, filename=name, content=content)

    response = client.get(
        FILES_PATH,
        headers={USER_ID_HEADER: "u1"},
        params={"sortBy": "filename", "sortDir": "asc", "size": 2},
    )

    body = response.json()
    assert [item["filename"] for item in body["content"]] == ["a.txt", "b.txt"]
    assert body["totalPages"] == 2
    assert body["last"] is False


def test_list_with_unknown_sort_is_bad_request(client: TestClient) -> None:
    """Unknown sort keys map to 400."""
    response = client.get(FILES_PATH, params={"sortBy": "bogus"})

    assert response.status_code == 400
    assert response.json()["message"] == "Invalid sortBy field: bogus"


def test_list_with_non_numeric_page_is_bad_request(client: TestClient) -> None:
    """Query parameter type errors map to 400."""
    response = client.get(FILES_PATH, params={"page": "first"})

    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_download_streams_content_with_headers(client: TestClient) -> None:
    """Downloads return the stored bytes, type, length, and disposition."""
    link = _upload(
        client, properties={"visibility": "PRIVATE", "filename": "résumé.txt"}
    ).json()["downloadLink"]

    response = client.get(link)

    assert response.status_code == 200
    assert response.content == b"hello"
    assert response.headers["content-type"].startswith("text/plain")
    assert response.headers["content-length"] == "5"
    assert "filename*=UTF-8''r%C3%A9sum%C3%A9.txt" in (
        response.headers["content-disposition"]
    )


def test_download_unknown_token_is_not_found(client: TestClient) -> None:
    """Unknown tokens map to 404."""
    response = client.get(f"{FILES_PATH}/download/nope")

    assert response.status_code == 404
    assert response.json()["status"] == 404


def test_download_response_closes_stream_without_reading_body() -> None:
    """The blob stream is released even when the body is never iterated."""
    stream = io.BytesIO(b"hello")
    service = MagicMock()
    service.download_file.return_value = DownloadDescriptor(
        record=MagicMock(),
        stream=stream,
        content_type="text/plain",
        size=5,
        content_disposition='attachment; filename="a.txt"',
    )
    app = create_app()
    register_routes(app=app, service=service, settings=FileAuthoritySettings())
    route = next(
        route
        for route in app.routes
        if getattr(route, "path", "") == f"{FILES_PATH}/download/{{token}}"
    )

    response = route.endpoint(token="t")
    assert stream.closed is False

    asyncio.run(response.background())

    assert stream.closed is True


def test_upload_with_overlong_owner_is_bad_request(client: TestClient) -> None:
    """Owner ids beyond the stored column width are rejected before storage."""
    response = _upload(client, owner="u" * 256)

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_ARGUMENT"


def test_rename_file(client: TestClient) -> None:
    """Owners may rename their files."""
    file_id = _upload(client).json()["id"]

    response = client.patch(
        f"{FILES_PATH}/{file_id}",
        headers={USER_ID_HEADER: "u1"},
        json={"newFilename": "b.txt"},
    )

    assert response.status_code == 200
    assert response.json()["filename"] == "b.txt"


def test_rename_by_other_user_is_forbidden(client: TestClient) -> None:
    """Non-owners cannot rename a file."""
    file_id = _upload(client).json()["id"]

    response = client.patch(
        f"{FILES_PATH}/{file_id}",
        headers={USER_ID_HEADER: "attacker"},
        json={"newFilename": "b.txt"},
    )

    assert response.status_code == 403


def test_rename_with_blank_name_is_noop(client: TestClient) -> None:
    """A blank new name leaves the file unchanged."""
    file_id = _upload(client).json()["id"]

    response = client.patch(
        f"{FILES_PATH}/{file_id}",
        headers={USER_ID_HEADER: "u1"},
        json={"newFilename": "  "},
    )

    assert response.status_code == 200
    assert response.json()["filename"] == "a.txt"


def test_rename_with_non_object_body_is_bad_request(client: TestClient) -> None:
    """Rename bodies must be JSON objects."""
    file_id = _upload(client).json()["id"]

    response = client.patch(
        f"{FILES_PATH}/{file_id}",
        headers={USER_ID_HEADER: "u1"},
        content=b"[]",
    )

    assert response.status_code == 400


def test_delete_file(client: TestClient) -> None:
    """Deletes answer 204 and make the download link unusable."""
    body = _upload(client).json()

    response = client.delete(
        f"{FILES_PATH}/{body['id']}", headers={USER_ID_HEADER: "u1"}
    )

    assert response.status_code == 204
    assert client.get(body["downloadLink"]).status_code == 404


def test_delete_unknown_file_is_not_found(client: TestClient) -> None:
    """Deleting a missing id maps to 404."""
    response = client.delete(f"{FILES_PATH}/missing", headers={USER_ID_HEADER: "u1"})

    assert response.status_code == 404
