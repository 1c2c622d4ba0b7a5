"""Accumulated text does not depend on how the byte stream is split."""
from __future__ import annotations

import json

from doubao_gateway.doubao.transcoder import StreamTranscoder


def _stream(conversation_id: str) -> bytes:
    frames = []
    for text in ["你好，", "世界 🌍", "\n", "emoji ✓ done\n"]:
        event_data = {"message": {"content": json.dumps({"text": text}, ensure_ascii=False)}, "conversation_id": conversation_id}
        frames.append({"event_type": 2001, "event_data": json.dumps(event_data, ensure_ascii=False)})
    frames.append({"event_type": 2003})
    body = "".join(f"data: {json.dumps(f, ensure_ascii=False)}\r\n\r\n" for f in frames)
    return body.encode("utf-8")


def _accumulate(chunks):
    return StreamTranscoder().buffered(chunks).content


def test_every_two_way_split_matches_unsplit(frames):
    raw = _stream(frames.conversation_id)
    expected = _accumulate([raw])
    assert expected == "你好，世界 🌍\nemoji ✓ done"
    for offset in range(1, len(raw)):
        got = _accumulate([raw[:offset], raw[offset:]])
        if got != expected:
            raise AssertionError(f"split at {offset} produced {got!r}")


def test_byte_by_byte_and_three_way_splits(frames):
    raw = _stream(frames.conversation_id)
    expected = _accumulate([raw])
    assert _accumulate([raw[i:i + 1] for i in range(len(raw))]) == expected
    for first in range(7, len(raw), 37):
        for second in range(first + 1, len(raw), 53):
            assert _accumulate([raw[:first], raw[first:second], raw[second:]]) == expected
