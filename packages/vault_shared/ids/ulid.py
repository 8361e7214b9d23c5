"""ULID generation and inspection helpers.

Identifiers are 26 Crockford Base32 characters encoding 128 bits: a 48-bit
millisecond timestamp followed by 80 bits of ``secrets`` entropy. The string
form sorts lexicographically in creation order at millisecond granularity.
"""

from __future__ import annotations

import secrets
import time

ULID_LENGTH = 26

_ALPHABET = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"
_DECODE = {char: index for index, char in enumerate(_ALPHABET)}
_TIMESTAMP_LIMIT = 1 << 48
_MAX_VALUE = (1 << 128) - 1


def generate_ulid_str(*, timestamp_ms: int | None = None) -> str:
    """Return a new ULID in canonical uppercase string form."""
    ts_ms = int(time.time() * 1000) if timestamp_ms is None else int(timestamp_ms)
    if ts_ms < 0 or ts_ms >= _TIMESTAMP_LIMIT:
        raise ValueError("timestamp_ms out of ULID 48-bit range")

    entropy = int.from_bytes(secrets.token_bytes(10), byteorder="big")
    return _encode((ts_ms << 80) | entropy)


def is_ulid_str(value: object) -> bool:
    """Return whether ``value`` is a canonical 26-character ULID string."""
    if not isinstance(value, str) or len(value) != ULID_LENGTH:
        return False
    try:
        _decode(value)
    except ValueError:
        return False
    return True


def ulid_timestamp_ms(value: str) -> int:
    """Return the embedded millisecond timestamp of one ULID string."""
    return _decode(value) >> 80


def _encode(number: int) -> str:
    """Encode one 128-bit integer as 26 Base32 characters."""
    chars: list[str] = []
    for _ in range(ULID_LENGTH):
        number, remainder = divmod(number, 32)
        chars.append(_ALPHABET[remainder])
    return "".join(reversed(chars))


def _decode(value: str) -> int:
    """Decode one canonical ULID string into its integer value."""
    if len(value) != ULID_LENGTH:
        raise ValueError("ULID string must be exactly 26 characters")
    number = 0
    for char in value.upper():
        digit = _DECODE.get(char)
        if digit is None:
            raise ValueError(f"invalid ULID character: {char!r}")
        number = (number << 5) | digit
    # 26 chars carry 130 bits; the top two must be zero.
    if number > _MAX_VALUE:
        raise ValueError("ULID value exceeds 128-bit range")
    return number
