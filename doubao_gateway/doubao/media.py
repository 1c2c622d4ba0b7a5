"""Binary helpers for attachments: checksums, names and image dimensions."""
from __future__ import annotations

import mimetypes
import os
import struct
import uuid
import zlib
from dataclasses import dataclass
from typing import Optional, Tuple
from urllib.parse import unquote, urlparse

from ..base.inline_data import OCTET_STREAM, decode_data_uri, sniff_mime

_JPEG_SOF_MARKERS = frozenset(
    (0xC0, 0xC1, 0xC2, 0xC3, 0xC5, 0xC6, 0xC7, 0xC9, 0xCA, 0xCB, 0xCD, 0xCE, 0xCF)
)
# markers without a length field: TEM, RST0-7, SOI, EOI (0x00 is a stuffed byte)
_JPEG_STANDALONE_MARKERS = frozenset((0x00, 0x01, *range(0xD0, 0xDA)))

# mimetypes picks odd first choices for a few common types
_PREFERRED_EXTENSIONS = {
    "image/jpeg": "jpeg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
    "text/plain": "txt",
    OCTET_STREAM: "bin",
}


def crc32_hex(data: bytes) -> str:
    """CRC-32 of ``data`` as 8 lowercase, zero-padded hex digits."""
    return format(zlib.crc32(data) & 0xFFFFFFFF, "08x")


def extension_for_mime(mime_type: str) -> str:
    if mime_type in _PREFERRED_EXTENSIONS:
        return _PREFERRED_EXTENSIONS[mime_type]
    guessed = mimetypes.guess_extension(mime_type or "")
    return guessed.lstrip(".") if guessed else "bin"


def mime_for_name(name: str) -> Optional[str]:
    return mimetypes.guess_type(name)[0]


def filename_from_url(url: str) -> str:
    return os.path.basename(unquote(urlparse(url).path)) or ""


def is_image_mime(mime_type: str) -> bool:
    return (mime_type or "").startswith("image/")


def _png_size(data: bytes) -> Optional[Tuple[int, int]]:
    if len(data) >= 24:
        width, height = struct.unpack(">II", data[16:24])
        if width > 0 and height > 0:
            return width, height
    return None


def _jpeg_size(data: bytes) -> Optional[Tuple[int, int]]:
    i = 2
    while i + 9 < len(data):
        if data[i] != 0xFF:
            i += 1
            continue
        marker = data[i + 1]
        if marker == 0xFF:
            # fill byte
            i += 1
            continue
        if marker in _JPEG_STANDALONE_MARKERS:
            i += 2
            continue
        (seg_len,) = struct.unpack(">H", data[i + 2:i + 4])
        if marker in _JPEG_SOF_MARKERS:
            height, width = struct.unpack(">HH", data[i + 5:i + 9])
            if width > 0 and height > 0:
                return width, height
            return None
        i += 2 + seg_len
    return None


def _webp_size(data: bytes) -> Optional[Tuple[int, int]]:
    p = 12
    while p + 8 <= len(data):
        chunk = data[p:p + 4]
        (size,) = struct.unpack("<I", data[p + 4:p + 8])
        if chunk == b"VP8X" and p + 18 <= len(data):
            width = int.from_bytes(data[p + 12:p + 15], "little") + 1
            height = int.from_bytes(data[p + 15:p + 18], "little") + 1
            return width, height
        p += 8 + size + (size % 2)
    return None


def sniff_image_size(data: bytes, mime_type: str = "") -> Optional[Tuple[int, int]]:
    """Read ``(width, height)`` from PNG, JPEG or WEBP (VP8X) headers.

    Returns ``None`` when no recognizable header is found; callers default
    to 1x1.
    """
    if len(data) < 16:
        return None
    mime_type = (mime_type or "").lower()
    if "png" in mime_type or data[:4] == b"\x89PNG":
        size = _png_size(data)
        if size:
            return size
    if "jpeg" in mime_type or "jpg" in mime_type or data[:2] == b"\xff\xd8":
        size = _jpeg_size(data)
        if size:
            return size
    if "webp" in mime_type or (data[:4] == b"RIFF" and data[8:12] == b"WEBP"):
        size = _webp_size(data)
        if size:
            return size
    return None


@dataclass(frozen=True)
class MaterializedAsset:
    """Asset bytes plus the naming metadata derived while fetching them."""

    data: bytes
    mime_type: str
    filename: str
    extension: str

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def is_image(self) -> bool:
        return is_image_mime(self.mime_type)


def asset_from_data_uri(value: str) -> MaterializedAsset:
    """Decode a data URI; raises ``ValueError`` when it is malformed."""
    mime_type, data = decode_data_uri(value)
    if mime_type == OCTET_STREAM:
        mime_type = sniff_mime(data)
    ext = extension_for_mime(mime_type)
    return MaterializedAsset(data=data, mime_type=mime_type, filename=f"{uuid.uuid4()}.{ext}", extension=ext)


def asset_from_download(data: bytes, url: str, content_type: Optional[str]) -> MaterializedAsset:
    """Name and type downloaded bytes.

    MIME type precedence: response ``Content-Type``, magic bytes, file name.
    """
    filename = filename_from_url(url)
    mime_type = (content_type or "").split(";")[0].strip().lower()
    if not mime_type or mime_type == OCTET_STREAM:
        sniffed = sniff_mime(data)
        mime_type = sniffed if sniffed != OCTET_STREAM else (mime_for_name(filename) or OCTET_STREAM)
    _, dot_ext = os.path.splitext(filename)
    ext = (dot_ext.lstrip(".") or extension_for_mime(mime_type)).lower()
    if not filename:
        filename = f"{uuid.uuid4()}.{ext}"
    return MaterializedAsset(data=data, mime_type=mime_type, filename=filename, extension=ext)


__all__ = [
    "MaterializedAsset",
    "asset_from_data_uri",
    "asset_from_download",
    "crc32_hex",
    "extension_for_mime",
    "filename_from_url",
    "is_image_mime",
    "mime_for_name",
    "sniff_image_size",
]
