"""Process entrypoint wiring settings, substrates, service, and HTTP runtime."""

from __future__ import annotations

from functools import partial

from fastapi import FastAPI

from packages.vault_core.health import register_health_routes
from packages.vault_shared.config import VaultSettings, load_settings
from packages.vault_shared.http import create_app, run_app
from packages.vault_shared.logging import configure_logging, get_logger, log_context
from resources.substrates.filesystem import (
    LocalFilesystemBlobSubstrate,
    resolve_filesystem_substrate_settings,
)
from resources.substrates.postgres import (
    create_postgres_engine,
    create_session_factory,
    ping,
    resolve_postgres_settings,
)
from services.state.file_authority.api import register_routes
from services.state.file_authority.config import resolve_file_authority_settings
from services.state.file_authority.data import SqlFileRepository
from services.state.file_authority.service import build_file_authority_service

_LOGGER = get_logger(__name__)


def create_vault_app(settings: VaultSettings) -> FastAPI:
    """Build substrates and the file service, then mount them on one app."""
    blob_store = LocalFilesystemBlobSubstrate(
        settings=resolve_filesystem_substrate_settings(settings)
    )
    engine = create_postgres_engine(resolve_postgres_settings(settings))
    service = build_file_authority_service(
        settings=settings,
        repository=SqlFileRepository(create_session_factory(engine)),
        blob_store=blob_store,
    )

    app = create_app(title="File Vault API")
    register_routes(
        app=app,
        service=service,
        settings=resolve_file_authority_settings(settings),
    )
    register_health_routes(
        app=app,
        metadata_probe=partial(ping, engine),
        blob_probe=blob_store.health,
    )
    return app


def main() -> None:
    """Load settings, configure logging, and serve the HTTP API."""
    settings = load_settings()
    configure_logging(
        level=settings.logging.level,
        json_output=settings.logging.json_output,
        service=settings.logging.service,
        environment=settings.logging.environment,
    )

    app = create_vault_app(settings)
    with log_context({"host": settings.http.host, "port": settings.http.port}):
        _LOGGER.info("file vault HTTP runtime starting")
    run_app(
        app,
        host=settings.http.host,
        port=settings.http.port,
        log_level=settings.http.log_level,
    )


if __name__ == "__main__":
    main()
