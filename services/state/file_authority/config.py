"""Pydantic settings for File Authority Service behavior."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from packages.vault_shared.config import VaultSettings, resolve_component_settings
from services.state.file_authority.component import SERVICE_COMPONENT_ID

MAX_TAGS_PER_FILE = 5


class FileAuthoritySettings(BaseModel):
    """File Authority Service runtime behavior settings."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    digest_algorithm: str = "sha256"
    lookahead_bytes: int = Field(default=64 * 1024, gt=0)
    chunk_size_bytes: int = Field(default=64 * 1024, gt=0)
    max_tags: int = Field(default=MAX_TAGS_PER_FILE, ge=0, le=MAX_TAGS_PER_FILE)
    max_upload_size_bytes: int = Field(default=512 * 1024 * 1024, gt=0)
    max_page_size: int = Field(default=100, gt=0)
    default_page_size: int = Field(default=10, gt=0)
    filename_precheck: bool = True
    download_path_prefix: str = "/api/v1/files/download/"

    @field_validator("digest_algorithm")
    @classmethod
    def _normalize_digest_algorithm(cls, value: str) -> str:
        """Require and normalize one hashlib algorithm name."""
        normalized = value.strip().lower()
        if normalized == "":
            raise ValueError("digest_algorithm is required")
        return normalized

    @field_validator("download_path_prefix")
    @classmethod
    def _validate_download_path_prefix(cls, value: str) -> str:
        """Require an absolute path prefix ending in a slash."""
        normalized = value.strip()
        if not normalized.startswith("/") or not normalized.endswith("/"):
            raise ValueError("download_path_prefix must start and end with '/'")
        return normalized

    @model_validator(mode="after")
    def _validate_page_sizes(self) -> FileAuthoritySettings:
        """Keep the default page size inside the allowed page size range."""
        if self.default_page_size > self.max_page_size:
            raise ValueError("default_page_size must be <= max_page_size")
        return self


def resolve_file_authority_settings(settings: VaultSettings) -> FileAuthoritySettings:
    """Resolve settings from ``components.service.file_authority``."""
    return resolve_component_settings(
        settings=settings,
        component_id=SERVICE_COMPONENT_ID,
        model=FileAuthoritySettings,
    )
