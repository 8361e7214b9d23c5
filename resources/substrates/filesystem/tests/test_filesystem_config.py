"""Configuration tests for filesystem substrate settings."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from packages.vault_shared.config import VaultSettings
from resources.substrates.filesystem.config import (
    FilesystemSubstrateSettings,
    resolve_filesystem_substrate_settings,
)


def test_root_dir_is_required() -> None:
    """Blank root directory should fail validation."""
    with pytest.raises(ValidationError, match="root_dir is required"):
        FilesystemSubstrateSettings(root_dir="  ")


def test_temp_prefix_is_required() -> None:
    """Blank temp prefix should fail validation."""
    with pytest.raises(ValidationError, match="temp_prefix is required"):
        FilesystemSubstrateSettings(temp_prefix="")


def test_unknown_keys_are_rejected() -> None:
    """Component settings should forbid unknown keys."""
    with pytest.raises(ValidationError):
        FilesystemSubstrateSettings(default_extension="bin")


def test_root_path_expands_and_resolves(tmp_path: Path) -> None:
    """Root path should resolve to an absolute path."""
    settings = FilesystemSubstrateSettings(root_dir=str(tmp_path / "a" / ".." / "b"))

    assert settings.root_path() == (tmp_path / "b").resolve()


def test_resolves_from_grouped_components_namespace() -> None:
    """Settings should load from ``components.substrate.filesystem``."""
    settings = VaultSettings(
        components={
            "substrate": {
                "filesystem": {"root_dir": "/srv/blobs", "fsync_writes": False}
            }
        }
    )

    resolved = resolve_filesystem_substrate_settings(settings)

    assert resolved.root_dir == "/srv/blobs"
    assert resolved.fsync_writes is False
