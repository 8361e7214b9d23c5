"""Postgres substrate primitives for the metadata store."""

from resources.substrates.postgres.component import RESOURCE_COMPONENT_ID
from resources.substrates.postgres.config import (
    PostgresSettings,
    resolve_postgres_settings,
)
from resources.substrates.postgres.engine import create_postgres_engine
from resources.substrates.postgres.errors import (
    UNIQUE_VIOLATION_SQLSTATE,
    extract_unique_violation,
)
from resources.substrates.postgres.health import ping
from resources.substrates.postgres.session import (
    create_session_factory,
    transactional_session,
)

__all__ = [
    "RESOURCE_COMPONENT_ID",
    "PostgresSettings",
    "UNIQUE_VIOLATION_SQLSTATE",
    "create_postgres_engine",
    "create_session_factory",
    "extract_unique_violation",
    "ping",
    "resolve_postgres_settings",
    "transactional_session",
]
