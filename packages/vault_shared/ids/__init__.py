"""Identifier and capability-token primitives."""

from packages.vault_shared.ids.tokens import (
    DOWNLOAD_TOKEN_BYTES,
    generate_download_token,
)
from packages.vault_shared.ids.ulid import (
    ULID_LENGTH,
    generate_ulid_str,
    is_ulid_str,
    ulid_timestamp_ms,
)

__all__ = [
    "DOWNLOAD_TOKEN_BYTES",
    "ULID_LENGTH",
    "generate_download_token",
    "generate_ulid_str",
    "is_ulid_str",
    "ulid_timestamp_ms",
]
