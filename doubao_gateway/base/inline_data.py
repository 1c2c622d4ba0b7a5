"""
Inline data helpers: data URIs, bare base64 and magic-byte MIME sniffing.

Chat clients send attachments either as http(s) URLs or inline, as a
``data:<mime>;base64,<payload>`` URI or as a bare base64 string. These
helpers recognize the inline shapes and normalize them into a data URI so
downstream code deals with exactly two source kinds.
"""
from __future__ import annotations

import base64
import binascii
import re
from typing import Optional, Tuple

_DATA_URI_RE = re.compile(r"^data:([\w.+-]+/[\w.+-]+);base64,", re.IGNORECASE)
_BASE64_RE = re.compile(r"^[A-Za-z0-9+/\r\n]+={0,2}$")
_URL_RE = re.compile(r"^https?://[^\s/$.?#].[^\s]*$", re.IGNORECASE)

# Bare base64 shorter than this is treated as text, not an attachment.
BARE_BASE64_MIN_LENGTH = 500

OCTET_STREAM = "application/octet-stream"


def is_data_uri(value: str) -> bool:
    return bool(_DATA_URI_RE.match(value or ""))


def is_url(value: str) -> bool:
    return bool(_URL_RE.match(value or ""))


def is_base64(value: str) -> bool:
    """Return True when ``value`` consists only of base64-alphabet characters."""
    return bool(value) and bool(_BASE64_RE.match(value))


def sniff_mime(data: bytes) -> str:
    """Return an image MIME type from magic bytes (PNG, JPEG, GIF, WEBP).

    Falls back to ``application/octet-stream``.
    """
    if data[:4] == b"\x89PNG":
        return "image/png"
    if data[:2] == b"\xff\xd8":
        return "image/jpeg"
    if data[:6] in (b"GIF87a", b"GIF89a"):
        return "image/gif"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return OCTET_STREAM


def decode_data_uri(value: str) -> Tuple[str, bytes]:
    """Split a data URI into ``(mime_type, payload_bytes)``.

    Raises ``ValueError`` for anything that is not a base64 data URI.
    """
    match = _DATA_URI_RE.match(value or "")
    if not match:
        raise ValueError("not a base64 data URI")
    payload = value[match.end():]
    try:
        return match.group(1).lower(), base64.b64decode(payload, validate=False)
    except binascii.Error as exc:
        raise ValueError(f"invalid base64 payload: {exc}") from exc


def normalize_candidate(value: object) -> Optional[str]:
    """Normalize an attachment candidate into a data URI or URL.

    - data URIs are returned unchanged;
    - bare base64 longer than :data:`BARE_BASE64_MIN_LENGTH` is wrapped into a
      data URI whose MIME type is sniffed from the decoded magic bytes;
    - http(s) URLs are returned unchanged;
    - anything else yields ``None``.
    """
    if not isinstance(value, str) or not value:
        return None
    if is_data_uri(value):
        return value
    if len(value) > BARE_BASE64_MIN_LENGTH and is_base64(value):
        try:
            head = base64.b64decode(value[:64], validate=False)
        except binascii.Error:
            head = b""
        if len(head) > 4:
            return f"data:{sniff_mime(head)};base64,{value}"
    return value if is_url(value) else None


__all__ = [
    "BARE_BASE64_MIN_LENGTH",
    "OCTET_STREAM",
    "is_data_uri",
    "is_url",
    "is_base64",
    "sniff_mime",
    "decode_data_uri",
    "normalize_candidate",
]
