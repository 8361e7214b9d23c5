"""Pydantic settings for the filesystem substrate component."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, ValidationInfo, field_validator

from packages.vault_shared.config import VaultSettings, resolve_component_settings
from resources.substrates.filesystem.component import RESOURCE_COMPONENT_ID


class FilesystemSubstrateSettings(BaseModel):
    """Filesystem substrate runtime settings for blob persistence."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    root_dir: str = "./var/blobs"
    temp_prefix: str = "blobtmp"
    fsync_writes: bool = True

    @field_validator("root_dir", "temp_prefix")
    @classmethod
    def _require_text(cls, value: str, info: ValidationInfo) -> str:
        """Require non-empty path settings."""
        normalized = value.strip()
        if normalized == "":
            raise ValueError(f"{info.field_name} is required")
        return normalized

    def root_path(self) -> Path:
        """Return the expanded root path for substrate operations."""
        return Path(self.root_dir).expanduser().resolve()


def resolve_filesystem_substrate_settings(
    settings: VaultSettings,
) -> FilesystemSubstrateSettings:
    """Resolve filesystem substrate settings from ``substrate.filesystem``."""
    return resolve_component_settings(
        settings=settings,
        component_id=RESOURCE_COMPONENT_ID,
        model=FilesystemSubstrateSettings,
    )
