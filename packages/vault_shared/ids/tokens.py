"""Unguessable capability tokens for anonymous downloads."""

from __future__ import annotations

import secrets

DOWNLOAD_TOKEN_BYTES = 32


def generate_download_token() -> str:
    """Return a URL-safe token carrying 256 bits of entropy."""
    return secrets.token_urlsafe(DOWNLOAD_TOKEN_BYTES)
