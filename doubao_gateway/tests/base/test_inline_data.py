from __future__ import annotations

import base64

import pytest

from doubao_gateway.base.inline_data import (
    BARE_BASE64_MIN_LENGTH,
    decode_data_uri,
    is_data_uri,
    normalize_candidate,
    sniff_mime,
)


@pytest.mark.parametrize(
    "head, mime",
    [
        (b"\x89PNG\r\n\x1a\n", "image/png"),
        (b"\xff\xd8\xff\xe0", "image/jpeg"),
        (b"GIF89a", "image/gif"),
        (b"RIFF\x00\x00\x00\x00WEBPVP8X", "image/webp"),
        (b"%PDF-1.7", "application/octet-stream"),
    ],
)
def test_sniff_mime(head, mime):
    assert sniff_mime(head + b"\x00" * 16) == mime


def test_bare_base64_becomes_data_uri_only_when_long_enough():
    jpeg = base64.b64encode(b"\xff\xd8\xff\xe0" + b"\x01" * 600).decode("ascii")
    assert len(jpeg) > BARE_BASE64_MIN_LENGTH
    assert normalize_candidate(jpeg) == f"data:image/jpeg;base64,{jpeg}"
    short = base64.b64encode(b"\xff\xd8\xff\xe0" + b"\x01" * 30).decode("ascii")
    assert normalize_candidate(short) is None


def test_urls_and_data_uris_pass_through():
    uri = "data:image/png;base64,iVBORw0KGgo="
    assert normalize_candidate(uri) == uri
    assert normalize_candidate("https://cdn.invalid/a.png?x=1") == "https://cdn.invalid/a.png?x=1"
    assert normalize_candidate("ftp://cdn.invalid/a.png") is None
    assert normalize_candidate("") is None
    assert normalize_candidate(None) is None


def test_decode_data_uri():
    mime, data = decode_data_uri("data:Image/PNG;base64," + base64.b64encode(b"abc").decode())
    assert (mime, data) == ("image/png", b"abc")
    assert is_data_uri("data:text/plain;base64,YQ==")
    with pytest.raises(ValueError):
        decode_data_uri("data:text/plain,hello")
