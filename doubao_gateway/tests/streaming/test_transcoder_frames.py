"""Frame decoding, output modes and the done latch of the transcoder."""
from __future__ import annotations

import json

import pytest

from doubao_gateway.base.errors import StreamFramingError, UpstreamRequestFailed
from doubao_gateway.doubao.transcoder import StreamTranscoder, TranscoderState, extract_content_text


@pytest.mark.parametrize(
    "content, expected",
    [
        (json.dumps("bare"), "bare"),
        (json.dumps({"text": "t", "content": "c"}), "t"),
        (json.dumps({"delta": {"text": "d"}, "content": "c"}), "d"),
        (json.dumps({"content": "c"}), "c"),
        ("not json at all", "not json at all"),
        (json.dumps(123), ""),
        (json.dumps({"other": 1}), ""),
    ],
)
def test_content_shapes_in_priority_order(content, expected):
    assert extract_content_text(content) == expected


def test_decode_frame_captures_conversation_id_and_ignores_other_types(frames):
    tr = StreamTranscoder()
    assert tr.decode_frame(json.dumps({"event_type": 2002, "event_data": "{}"})) is None
    event = tr.decode_frame(frames.delta("hi").decode()[len("data: "):].strip())
    assert event is not None and event.event_type == "delta" and event.text == "hi"
    assert tr.conversation_id == frames.conversation_id


def test_undecodable_envelope_and_payload_raise_framing_error():
    tr = StreamTranscoder()
    with pytest.raises(StreamFramingError):
        tr.decode_frame("{not json")
    with pytest.raises(StreamFramingError):
        tr.decode_frame(json.dumps({"event_type": 2001, "event_data": "{broken"}))


def test_error_frame_moves_to_error_state(frames):
    tr = StreamTranscoder()
    with pytest.raises(UpstreamRequestFailed) as info:
        tr.buffered([frames.delta("a"), frames.error(710022004, "busy")])
    assert "710022004" in info.value.message
    assert tr.state is TranscoderState.ERROR


def test_buffered_trims_single_trailing_newline_and_reports_done(frames):
    seen = []
    tr = StreamTranscoder(on_done=seen.append)
    obj = tr.buffered([frames.delta("line\n\n", shape="delta"), frames.close()])
    assert obj.content == "line\n"
    assert obj.id == frames.conversation_id
    assert obj.finish_reason == "stop"
    assert seen == [frames.conversation_id]
    assert tr.state is TranscoderState.DONE


def test_stream_without_close_frame_is_implicit_success(frames):
    tr = StreamTranscoder()
    events = list(tr.events([frames.delta("x", shape="string")]))
    assert [e.event_type for e in events] == ["delta", "terminal"]
    assert events[-1].implicit is True


def test_frames_after_finish_are_ignored(frames):
    tr = StreamTranscoder()
    obj = tr.buffered([frames.delta("a"), frames.finish(), frames.delta("late")])
    assert obj.content == "a"


def test_live_emits_opening_deltas_and_single_closing_chunk(frames):
    done = []
    tr = StreamTranscoder(on_done=done.append)
    chunks = list(tr.live(tr.events([frames.delta("a"), frames.delta("b"), frames.close()])))
    assert [c.content for c in chunks] == ["", "a", "b", ""]
    assert [c.finish_reason for c in chunks] == [None, None, None, "stop"]
    assert done == [frames.conversation_id]
    assert chunks[-1].to_dict()["object"] == "chat.completion.chunk"


def test_live_mid_stream_error_still_terminates_once(frames):
    done = []
    tr = StreamTranscoder(on_done=done.append)
    chunks = list(tr.live(tr.events([frames.delta("a"), b"data: {garbage\n\n", frames.delta("b")])))
    assert [c.content for c in chunks] == ["", "a", ""]
    assert sum(1 for c in chunks if c.finish_reason == "stop") == 1
    assert tr.state is TranscoderState.ERROR
    assert done == []


def test_stringified_event_types_and_object_payloads_are_decoded(frames):
    event_data = {"message": {"content": json.dumps({"text": "hi"})}, "conversation_id": frames.conversation_id}
    as_object = frames.frame({"event_type": "2001", "event_data": event_data})
    as_string = frames.frame({"event_type": "2001", "event_data": json.dumps({"message": {"content": json.dumps({"text": " there"})}})})
    closed = frames.frame({"event_type": "2003"})

    tr = StreamTranscoder()
    obj = tr.buffered([as_object, as_string, closed, frames.delta("late")])

    assert obj.content == "hi there"
    assert obj.id == frames.conversation_id
    assert tr.state is TranscoderState.DONE


def test_stringified_zero_code_is_not_an_error(frames):
    tr = StreamTranscoder()
    obj = tr.buffered([frames.frame({"code": "0", "event_type": "2001", "event_data": json.dumps({"message": {"content": "plain"}})})])
    assert obj.content == "plain"
    with pytest.raises(UpstreamRequestFailed):
        StreamTranscoder().buffered([frames.error("710022004", "busy")])
