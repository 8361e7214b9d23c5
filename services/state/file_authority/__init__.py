"""File Authority Service native package exports."""

from packages.vault_shared.errors import ErrorCategory, ErrorDetail
from services.state.file_authority.component import SERVICE_COMPONENT_ID
from services.state.file_authority.config import FileAuthoritySettings
from services.state.file_authority.domain import (
    DownloadDescriptor,
    FilePage,
    FileQuery,
    FileRecord,
    SortField,
    StorageResult,
    Visibility,
)
from services.state.file_authority.implementation import DefaultFileAuthorityService
from services.state.file_authority.service import (
    FileAuthorityService,
    build_file_authority_service,
)

__all__ = [
    "SERVICE_COMPONENT_ID",
    "DefaultFileAuthorityService",
    "DownloadDescriptor",
    "ErrorCategory",
    "ErrorDetail",
    "FileAuthorityService",
    "FileAuthoritySettings",
    "FilePage",
    "FileQuery",
    "FileRecord",
    "SortField",
    "StorageResult",
    "Visibility",
    "build_file_authority_service",
]
