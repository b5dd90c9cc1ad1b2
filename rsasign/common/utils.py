"""Utility helpers: base64, big-endian integers, timestamps."""

import base64
import binascii
import datetime
import re
import time

_DECIMAL_RE = re.compile(r"^[0-9]+$")


def now_ms() -> int:
    """Return current time in milliseconds since epoch (UTC)."""
    return int(time.time() * 1000)


def utc_now_iso() -> str:
    """Return the current UTC time as an ISO-8601 string."""
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


def base64_encode(data: bytes) -> str:
    """Encode bytes to standard base64 text (with padding)."""
    return base64.b64encode(data).decode("ascii")


def base64_decode(s: str) -> bytes:
    """
    Decode standard base64 text to bytes.
    Raises ValueError on characters outside the alphabet or bad padding.
    """
    s = "".join(s.split())
    if not s:
        raise ValueError("empty base64 string")
    try:
        return base64.b64decode(s, validate=True)
    except binascii.Error as e:
        raise ValueError(f"invalid base64: {e}") from e


def int_to_bytes(value: int) -> bytes:
    """
    Minimal big-endian encoding of a non-negative integer.
    Zero is encoded as a single 0x00 byte.
    """
    if value < 0:
        raise ValueError("value must be non-negative")
    length = max(1, (value.bit_length() + 7) // 8)
    return value.to_bytes(length, "big")


def bytes_to_int(data: bytes) -> int:
    """Interpret bytes as an unsigned big-endian integer."""
    return int.from_bytes(data, "big")


def int_to_base64(value: int) -> str:
    return base64_encode(int_to_bytes(value))


def base64_to_int(s: str) -> int:
    return bytes_to_int(base64_decode(s))


def parse_decimal(text) -> int:
    """
    Parse an unsigned decimal string.
    Surrounding whitespace and leading zeros are accepted; signs are not.
    """
    if isinstance(text, bool):
        raise ValueError("not a decimal integer")
    if isinstance(text, int):
        if text < 0:
            raise ValueError("value must be non-negative")
        return text
    if not isinstance(text, str):
        raise ValueError("not a decimal integer")
    stripped = text.strip()
    if not _DECIMAL_RE.match(stripped):
        raise ValueError(f"not an unsigned decimal integer: {text!r}")
    return int(stripped)


def short(text: str, size: int = 20) -> str:
    """Prefix of a (possibly secret) value, for log lines."""
    if text is None:
        return ""
    return text[:size] + ("..." if len(text) > size else "")
