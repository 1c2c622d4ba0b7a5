"""LiveSequence iteration, wire rendering and idempotent cleanup."""
from __future__ import annotations

import json

from doubao_gateway.base.models import DONE_FRAME, CompletionChunk
from doubao_gateway.base.streaming import LiveSequence


def _chunks():
    yield CompletionChunk(id="c1", content="")
    yield CompletionChunk(id="c1", content="hi")
    yield CompletionChunk(id="c1", finish_reason="stop")


def test_iter_sse_renders_frames_then_done_and_runs_cleanup_once():
    calls = []
    seq = LiveSequence(_chunks())
    seq.add_cleanup(lambda: calls.append("cleanup"))
    frames = list(seq.iter_sse())
    assert frames[-1] == DONE_FRAME
    payloads = [json.loads(f[len("data: "):]) for f in frames[:-1]]
    assert [p["choices"][0]["delta"]["content"] for p in payloads] == ["", "hi", ""]
    assert payloads[-1]["choices"][0]["finish_reason"] == "stop"
    seq.close()
    assert calls == ["cleanup"]
    assert seq.closed


def test_abandoned_sequence_closes_source_and_cleans_up():
    closed = []

    def source():
        try:
            yield CompletionChunk(id="x", content="a")
            yield CompletionChunk(id="x", content="b")
        finally:
            closed.append("source")

    calls = []
    seq = LiveSequence(source())
    seq.add_cleanup(lambda: calls.append("first"))
    seq.add_cleanup(lambda: calls.append("second"))
    assert next(seq).content == "a"
    seq.close()
    seq.close()
    assert closed == ["source"]
    assert calls == ["second", "first"]
    assert list(seq) == []


def test_cleanup_errors_do_not_escape():
    def boom():
        raise RuntimeError("cleanup failed")

    seq = LiveSequence.single(CompletionChunk(id="", content="only", finish_reason="stop"))
    seq.add_cleanup(boom)
    with seq:
        chunks = seq.collect()
    assert [c.content for c in chunks] == ["only"]
    assert seq.closed
