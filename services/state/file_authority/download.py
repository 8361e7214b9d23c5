"""Response-descriptor helpers for the download resolver."""

from __future__ import annotations

import re
from urllib.parse import quote

from services.state.file_authority.ingestion import OCTET_STREAM

_TOKEN = r"[A-Za-z0-9!#$%&'*+.^_`|~-]+"
_PARAMETER = rf"\s*;\s*{_TOKEN}=(\"[^\"]*\"|{_TOKEN})"
_MEDIA_TYPE = re.compile(rf"^{_TOKEN}/{_TOKEN}({_PARAMETER})*$")


def resolve_media_type(value: str | None) -> str:
    """Return ``value`` when it parses as a media type, else generic binary."""
    if value is None:
        return OCTET_STREAM
    candidate = value.strip()
    if _MEDIA_TYPE.match(candidate) is None:
        return OCTET_STREAM
    return candidate


def content_disposition(filename: str) -> str:
    """Build an ``attachment`` disposition naming ``filename``.

    Non-ASCII names get an ASCII fallback plus an RFC 5987 ``filename*``.
    """
    escaped = filename.replace("\\", "\\\\").replace('"', '\\"')
    if escaped.isascii():
        return f'attachment; filename="{escaped}"'
    fallback = escaped.encode("ascii", "replace").decode("ascii").replace("?", "_")
    encoded = quote(filename, safe="")
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{encoded}"
