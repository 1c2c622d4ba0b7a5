"""Incremental SSE parsing over arbitrarily split input."""
from __future__ import annotations

from doubao_gateway.base.streaming import SSEParser, Utf8ChunkDecoder, iter_sse_events


def test_frames_split_between_cr_and_lf_are_parsed_once():
    parser = SSEParser()
    events = parser.feed("data: one\r")
    events += parser.feed("\n\r")
    events += parser.feed("\ndata: two\r\n\r\n")
    assert [e.data for e in events] == ["one", "two"]


def test_multiline_data_comments_and_fields():
    parser = SSEParser()
    events = parser.feed(": keep-alive\nevent: update\nid: 7\ndata: first\ndata:second\n\n")
    assert len(events) == 1
    evt = events[0]
    assert evt.data == "first\nsecond"
    assert evt.event == "update"
    assert evt.id == "7"


def test_comment_only_frame_dispatches_nothing():
    parser = SSEParser()
    assert parser.feed(": ping\n\n") == []


def test_close_dispatches_trailing_frame_without_blank_line():
    parser = SSEParser()
    assert parser.feed("data: tail") == []
    events = parser.close()
    assert [e.data for e in events] == ["tail"]


def test_utf8_decoder_holds_back_partial_character():
    raw = "你好".encode("utf-8")
    decoder = Utf8ChunkDecoder()
    out = decoder.decode(raw[:1]) + decoder.decode(raw[1:4]) + decoder.decode(raw[4:])
    assert out + decoder.flush() == "你好"
    assert decoder.decode(raw[:2]) == ""


def test_iter_sse_events_over_byte_chunks():
    payload = "data: 豆包\n\ndata: b\n\n".encode("utf-8")
    chunks = [payload[i:i + 3] for i in range(0, len(payload), 3)]
    assert [e.data for e in iter_sse_events(chunks)] == ["豆包", "b"]
