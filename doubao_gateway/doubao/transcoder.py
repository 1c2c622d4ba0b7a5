"""Transcode the upstream event stream into chat-completion output.

State machine: ``OPEN -> ACCUMULATING* -> DONE``; ``ERROR`` is absorbing.

Upstream frames are JSON envelopes::

    {"event_type": 2001, "event_data": "<json>"}   content delta
    {"event_type": 2003}                           stream closed
    {"code": 710022004, "message": "..."}          upstream error

The nested ``event_data.message.content`` comes in several shapes; the first
matcher of :data:`CONTENT_SHAPE_MATCHERS` that type-matches wins.
"""
from __future__ import annotations

import json
import logging
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional

from ..base.errors import GatewayError, StreamFramingError, UpstreamRequestFailed
from ..base.logging import LogContext, get_logger, normalized_log_event
from ..base.log_support import truncate_for_log
from ..base.models import CompletionChunk, CompletionObject, UpstreamEvent
from ..base.streaming import iter_sse_events

EVENT_TYPE_DELTA = 2001
EVENT_TYPE_CLOSED = 2003


class TranscoderState(str, Enum):
    OPEN = "open"
    ACCUMULATING = "accumulating"
    DONE = "done"
    ERROR = "error"


def _bare_string(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def _text_field(value: Any) -> Optional[str]:
    if isinstance(value, dict) and isinstance(value.get("text"), str):
        return value["text"]
    return None


def _delta_text(value: Any) -> Optional[str]:
    delta = value.get("delta") if isinstance(value, dict) else None
    if isinstance(delta, dict) and isinstance(delta.get("text"), str):
        return delta["text"]
    return None


def _content_field(value: Any) -> Optional[str]:
    if isinstance(value, dict) and isinstance(value.get("content"), str):
        return value["content"]
    return None


CONTENT_SHAPE_MATCHERS: List[Callable[[Any], Optional[str]]] = [
    _bare_string,
    _text_field,
    _delta_text,
    _content_field,
]


def extract_content_text(content: Any) -> str:
    """Decode ``message.content`` into delta text.

    JSON content goes through the shape matchers (no match yields ``""``);
    content that is not JSON is used verbatim.
    """
    if not isinstance(content, str):
        return ""
    try:
        parsed = json.loads(content)
    except ValueError:
        return content
    for matcher in CONTENT_SHAPE_MATCHERS:
        text = matcher(parsed)
        if text is not None:
            return text
    return ""


def _is_error_code(code: Any) -> bool:
    return bool(code) and str(code) != "0"


class StreamTranscoder:
    """Decode one upstream byte stream; not reusable across streams.

    Parameters:
        on_done: Called once with the upstream conversation id (``""`` when
            none was seen) when the stream reaches DONE.
        logger: Optional logger override.
    """

    def __init__(
        self,
        *,
        on_done: Optional[Callable[[str], None]] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.state = TranscoderState.OPEN
        self.conversation_id = ""
        self._on_done = on_done
        self._done_reported = False
        self._logger = logger or get_logger("gateway.doubao.transcoder")

    @property
    def finished(self) -> bool:
        return self.state in (TranscoderState.DONE, TranscoderState.ERROR)

    # ---- frame level ----
    def decode_frame(self, data: str) -> Optional[UpstreamEvent]:
        """Decode one frame's ``data`` field; ``None`` for frames carrying nothing.

        Raises :class:`StreamFramingError` for undecodable envelopes or
        nested payloads.
        """
        try:
            envelope = json.loads(data)
        except ValueError as exc:
            raise StreamFramingError(f"Stream response invalid: {truncate_for_log(data)}", raw=exc) from exc
        if not isinstance(envelope, dict):
            return None
        if _is_error_code(envelope.get("code")):
            return UpstreamEvent(
                event_type="error",
                text=f"[doubao request failed]: {envelope.get('code')}-{envelope.get('message')}",
                raw=envelope,
            )
        # the upstream may stringify numeric fields
        event_type = str(envelope.get("event_type"))
        if event_type == str(EVENT_TYPE_CLOSED):
            return UpstreamEvent(event_type="terminal", conversation_id=self.conversation_id or None, raw=envelope)
        if event_type != str(EVENT_TYPE_DELTA):
            return None

        raw_payload = envelope.get("event_data")
        try:
            payload = raw_payload if isinstance(raw_payload, dict) else json.loads(raw_payload)
        except (TypeError, ValueError) as exc:
            raise StreamFramingError(
                f"Stream response invalid: {truncate_for_log(str(raw_payload))}", raw=exc
            ) from exc
        if not isinstance(payload, dict):
            return None
        if not self.conversation_id and isinstance(payload.get("conversation_id"), str):
            self.conversation_id = payload["conversation_id"]
        if payload.get("is_finish"):
            return UpstreamEvent(event_type="terminal", conversation_id=self.conversation_id or None, raw=payload)

        message = payload.get("message")
        if not isinstance(message, dict) or not message.get("content"):
            return None
        text = extract_content_text(message["content"])
        if not text:
            return None
        return UpstreamEvent(event_type="delta", text=text, conversation_id=self.conversation_id or None, raw=payload)

    # ---- stream level ----
    def events(self, byte_chunks: Iterable[bytes]) -> Iterator[UpstreamEvent]:
        """Yield delta events, then exactly one terminal event.

        A stream that ends without a close frame yields an implicit terminal.
        Error frames and undecodable frames move to ERROR and raise.
        """
        for frame in iter_sse_events(byte_chunks):
            if self.finished:
                return
            try:
                event = self.decode_frame(frame.data)
            except StreamFramingError:
                self.state = TranscoderState.ERROR
                raise
            if event is None:
                continue
            if event.event_type == "error":
                self.state = TranscoderState.ERROR
                raise UpstreamRequestFailed(event.text)
            if event.event_type == "terminal":
                self._finish()
                yield event
                return
            self.state = TranscoderState.ACCUMULATING
            yield event
        if not self.finished:
            self._finish()
            yield UpstreamEvent(event_type="terminal", conversation_id=self.conversation_id or None, implicit=True)

    def buffered(self, byte_chunks: Iterable[bytes]) -> CompletionObject:
        """Accumulate the whole stream into one :class:`CompletionObject`."""
        parts: List[str] = []
        for event in self.events(byte_chunks):
            if event.event_type == "delta":
                parts.append(event.text)
        content = "".join(parts)
        if content.endswith("\n"):
            content = content[:-1]
        return CompletionObject(id=self.conversation_id, content=content)

    def live(self, events: Iterable[UpstreamEvent]) -> Iterator[CompletionChunk]:
        """Re-emit events as chunks: an opening chunk, deltas, one closing chunk.

        An error raised by ``events`` ends the sequence with the closing
        chunk instead of propagating.
        """
        created = CompletionChunk(id="").created
        yield CompletionChunk(id=self.conversation_id, created=created)
        try:
            for event in events:
                if event.event_type == "delta":
                    yield CompletionChunk(id=self.conversation_id, content=event.text, created=created)
                elif event.is_closing:
                    break
        except GatewayError as exc:
            self.state = TranscoderState.ERROR
            normalized_log_event(
                self._logger,
                "transcoder.stream_error",
                LogContext(upstream="doubao", conversation_id=self.conversation_id or None),
                level=logging.ERROR,
                phase="stream",
                error_code=exc.code.value,
                kind=exc.kind,
                emitted=True,
                error=truncate_for_log(exc.message),
            )
        yield CompletionChunk(id=self.conversation_id, finish_reason="stop", created=created)

    def _finish(self) -> None:
        self.state = TranscoderState.DONE
        if self._done_reported:
            return
        self._done_reported = True
        if self._on_done is not None:
            self._on_done(self.conversation_id)


__all__ = [
    "StreamTranscoder",
    "TranscoderState",
    "CONTENT_SHAPE_MATCHERS",
    "extract_content_text",
    "EVENT_TYPE_DELTA",
    "EVENT_TYPE_CLOSED",
]
