"""Streaming primitives: incremental SSE parsing and live chunk sequences."""

from .sse import SSEEvent, SSEParser, Utf8ChunkDecoder, iter_sse_events
from .live_sequence import LiveSequence

__all__ = [
    "SSEEvent",
    "SSEParser",
    "Utf8ChunkDecoder",
    "iter_sse_events",
    "LiveSequence",
]
