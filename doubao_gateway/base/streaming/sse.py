"""Incremental server-sent-event parsing over an arbitrarily split byte stream.

Two layers:

- :class:`Utf8ChunkDecoder` turns raw byte chunks into text, holding back an
  incomplete multi-byte tail until the next chunk resolves it.
- :class:`SSEParser` turns text into complete :class:`SSEEvent` frames. It
  accepts ``\\n``, ``\\r\\n`` and ``\\r`` line endings, multi-line ``data:``
  fields and ``:`` comment lines, and tolerates frames split anywhere,
  including between ``\\r`` and ``\\n``.

:func:`iter_sse_events` wires both together over any iterable of bytes.
"""
from __future__ import annotations

import codecs
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional


@dataclass(frozen=True)
class SSEEvent:
    """One dispatched event frame."""

    data: str
    event: str = "message"
    id: Optional[str] = None


class Utf8ChunkDecoder:
    """Decode UTF-8 bytes chunk by chunk without splitting characters."""

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def decode(self, chunk: bytes) -> str:
        return self._decoder.decode(chunk, final=False)

    def flush(self) -> str:
        """Return whatever remains; a truncated trailing character becomes U+FFFD."""
        return self._decoder.decode(b"", final=True)


class SSEParser:
    """Incremental event-frame parser.

    ``feed`` returns the events completed by the given text; partial lines and
    partial frames are buffered. ``close`` dispatches a final frame that was
    not followed by a blank line.
    """

    def __init__(self) -> None:
        self._buffer = ""
        self._data: List[str] = []
        self._event = ""
        self._id: Optional[str] = None
        self._has_fields = False

    def feed(self, text: str) -> List[SSEEvent]:
        self._buffer += text
        events: List[SSEEvent] = []
        while True:
            line, rest = self._split_line(self._buffer)
            if line is None:
                break
            self._buffer = rest
            evt = self._process_line(line)
            if evt is not None:
                events.append(evt)
        return events

    def close(self) -> List[SSEEvent]:
        events: List[SSEEvent] = []
        if self._buffer:
            evt = self._process_line(self._buffer)
            self._buffer = ""
            if evt is not None:
                events.append(evt)
        evt = self._dispatch()
        if evt is not None:
            events.append(evt)
        return events

    @staticmethod
    def _split_line(buf: str):
        for idx, ch in enumerate(buf):
            if ch == "\n":
                return buf[:idx], buf[idx + 1:]
            if ch == "\r":
                if idx + 1 == len(buf):
                    # lone CR at the end may be the first half of CRLF
                    return None, buf
                if buf[idx + 1] == "\n":
                    return buf[:idx], buf[idx + 2:]
                return buf[:idx], buf[idx + 1:]
        return None, buf

    def _process_line(self, line: str) -> Optional[SSEEvent]:
        if line == "":
            return self._dispatch()
        if line.startswith(":"):
            return None
        field, sep, value = line.partition(":")
        if sep and value.startswith(" "):
            value = value[1:]
        if field == "data":
            self._data.append(value)
            self._has_fields = True
        elif field == "event":
            self._event = value
            self._has_fields = True
        elif field == "id":
            self._id = value
            self._has_fields = True
        # "retry" and unknown fields are ignored
        return None

    def _dispatch(self) -> Optional[SSEEvent]:
        if not self._has_fields or not self._data:
            self._reset()
            return None
        evt = SSEEvent(data="\n".join(self._data), event=self._event or "message", id=self._id)
        self._reset()
        return evt

    def _reset(self) -> None:
        self._data = []
        self._event = ""
        self._id = None
        self._has_fields = False


def iter_sse_events(byte_chunks: Iterable[bytes]) -> Iterator[SSEEvent]:
    """Yield complete SSE events from an iterable of raw byte chunks."""
    decoder = Utf8ChunkDecoder()
    parser = SSEParser()
    for chunk in byte_chunks:
        if not chunk:
            continue
        text = decoder.decode(chunk)
        if text:
            yield from parser.feed(text)
    tail = decoder.flush()
    if tail:
        yield from parser.feed(tail)
    yield from parser.close()


__all__ = ["SSEEvent", "Utf8ChunkDecoder", "SSEParser", "iter_sse_events"]
