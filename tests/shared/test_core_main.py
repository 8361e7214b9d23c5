"""Tests for process wiring in the core entrypoint."""

from __future__ import annotations

import io
from pathlib import Path
from unittest.mock import MagicMock, patch

from fastapi.testclient import TestClient
from sqlalchemy import create_engine

from packages.vault_core.main import create_vault_app, main
from packages.vault_shared.config import VaultSettings
from services.state.file_authority.api import USER_ID_HEADER
from services.state.file_authority.data import metadata


def _settings(tmp_path: Path) -> VaultSettings:
    return VaultSettings(
        components={
            "substrate": {"filesystem": {"root_dir": str(tmp_path / "blobs")}},
        }
    )


def test_create_vault_app_wires_routes_and_health(tmp_path: Path) -> None:
    """The assembled app serves file routes and the health probe."""
    engine = create_engine(f"sqlite:///{tmp_path / 'vault.db'}")
    metadata.create_all(engine)

    with patch(
        "packages.vault_core.main.create_postgres_engine", return_value=engine
    ):
        app = create_vault_app(_settings(tmp_path))

    client = TestClient(app)
    upload = client.post(
        "/api/v1/files",
        headers={USER_ID_HEADER: "u1"},
        files={"file": ("a.txt", io.BytesIO(b"hello"), "text/plain")},
        data={"properties": '{"visibility": "PUBLIC"}'},
    )

    assert client.get("/health").status_code == 200
    assert upload.status_code == 201
    assert client.get("/api/v1/files").json()["totalElements"] == 1
    assert (tmp_path / "blobs").is_dir()
    engine.dispose()


def test_main_configures_logging_and_runs_app(tmp_path: Path) -> None:
    """main() loads settings, configures logging, and hands the app to uvicorn."""
    settings = _settings(tmp_path)
    fake_app = MagicMock()

    with (
        patch("packages.vault_core.main.load_settings", return_value=settings),
        patch("packages.vault_core.main.configure_logging") as mock_logging,
        patch("packages.vault_core.main.create_vault_app", return_value=fake_app),
        patch("packages.vault_core.main.run_app") as mock_run,
    ):
        main()

    mock_logging.assert_called_once_with(
        level="INFO",
        json_output=True,
        service="filevault",
        environment="dev",
    )
    mock_run.assert_called_once_with(
        fake_app, host="127.0.0.1", port=8080, log_level="info"
    )
