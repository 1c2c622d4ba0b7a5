"""Flatten a chat conversation plus uploaded assets into one upstream payload.

The upstream keeps no multi-turn memory per call, so the whole history is
rendered into a single text blob by a :class:`HistoryStrategy`:

- :class:`PlainConcatenation` for single messages and for continued
  conversations (the upstream already holds the context);
- :class:`RoleDelimitedHistory` otherwise, with ``<|im_start|>{role}``
  markers.

Inline data never travels in the text; attachments go through the staged
asset channel only.
"""
from __future__ import annotations

import json
import logging
import re
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Sequence

from ..base.logging import LogContext, get_logger, log_event
from ..base.models import AssetRef, Message

ATTACHMENT_FOCUS_PROMPT = "关注用户最新发送文件和消息"

TEXT_CONTENT_TYPE = 2001

_DATA_URI_RE = re.compile(r"data:[^;,\s]+;base64,[A-Za-z0-9+/=]*")
_BASE64_RUN_RE = re.compile(r"[A-Za-z0-9+/=]{500,}")
_BASE64_LINE_RE = re.compile(r"[A-Za-z0-9+/=]+")
# lines of a MIME-style wrapped block are at least this long, except the last
_WRAPPED_LINE_MIN = 40
_BASE64_CHAR_RE = re.compile(r"[A-Za-z0-9+/=]")
_PURE_BASE64_LINE_RE = re.compile(r"^[A-Za-z0-9+/]+={0,2}$")
_MARKDOWN_IMAGE_RE = re.compile(r"!\[.+\]\(.+\)")
_SANDBOX_PATH_RE = re.compile(r"/mnt/data/.+")

_ROLE_MARKERS = {
    "system": "<|im_start|>system",
    "assistant": "<|im_start|>assistant",
    "user": "<|im_start|>user",
}


def _strip_wrapped_runs(text: str) -> str:
    """Collapse blocks of consecutive base64-only lines of 500+ characters to one empty line."""
    kept: List[str] = []
    block: List[str] = []

    def _flush() -> None:
        if sum(len(line.rstrip("\r")) for line in block) >= 500:
            kept.append("")
        else:
            kept.extend(block)
        block.clear()

    for line in text.split("\n"):
        body = line.rstrip("\r")
        if _BASE64_LINE_RE.fullmatch(body) and (len(body) >= _WRAPPED_LINE_MIN or block):
            block.append(line)
            if len(body) < _WRAPPED_LINE_MIN:
                _flush()
            continue
        _flush()
        kept.append(line)
    _flush()
    return "\n".join(kept)


def clean_part_text(text: str) -> str:
    """Drop inline data from one text part before it joins the history."""
    if not text:
        return ""
    text = _DATA_URI_RE.sub("", text)
    text = _BASE64_RUN_RE.sub("", text)
    lines = [
        line for line in re.split(r"\r?\n", text)
        if not (len(line.strip()) > 300 and _PURE_BASE64_LINE_RE.match(line.strip()))
    ]
    return "\n".join(lines)


def strip_inline_data(text: str) -> str:
    """Remove data URIs, long base64 runs and base64-looking lines, then trim.

    A line longer than 200 characters of which more than 90% are base64
    alphabet characters is treated as inline data.
    """
    if not text:
        return ""
    text = _DATA_URI_RE.sub("", text)
    text = _strip_wrapped_runs(text)
    text = _BASE64_RUN_RE.sub("", text)
    kept: List[str] = []
    for line in re.split(r"\r?\n", text):
        trimmed = line.strip()
        if len(trimmed) > 200 and len(_BASE64_CHAR_RE.findall(trimmed)) > len(trimmed) * 0.9:
            continue
        kept.append(line)
    return "\n".join(kept).strip()


class HistoryStrategy(Protocol):
    """Stateless rendering of a message list into one text blob."""

    def render(self, messages: Sequence[Message]) -> str: ...


class PlainConcatenation:
    """Text parts concatenated verbatim, one per line, without role markers."""

    def render(self, messages: Sequence[Message]) -> str:
        out: List[str] = []
        for message in messages:
            for text in message.text_parts():
                out.append(f"{text}\n")
        return "".join(out)


class RoleDelimitedHistory:
    """``<|im_start|>{role}`` delimited history with inline data removed.

    String messages are closed with ``<|im_end|>``; every text part of a
    structured message opens its own role block. Markdown image links and
    ``/mnt/data/`` sandbox paths are removed from the result.
    """

    def render(self, messages: Sequence[Message]) -> str:
        out: List[str] = []
        for message in messages:
            marker = _ROLE_MARKERS.get(message.role, message.role)
            if isinstance(message.content, str):
                out.append(f"{marker}\n{clean_part_text(message.content)}\n<|im_end|>\n")
                continue
            for text in message.text_parts():
                out.append(f"{marker}\n{clean_part_text(text)}\n")
        rendered = "".join(out)
        rendered = _MARKDOWN_IMAGE_RE.sub("", rendered)
        return _SANDBOX_PATH_RE.sub("", rendered)


@dataclass
class UpstreamPayload:
    """The single-message ``messages`` array of the upstream chat call."""

    text: str
    attachments: List[Dict[str, Any]] = field(default_factory=list)
    references: List[Dict[str, Any]] = field(default_factory=list)

    def to_messages(self) -> List[Dict[str, Any]]:
        return [
            {
                "content": json.dumps({"text": self.text}, ensure_ascii=False),
                "content_type": TEXT_CONTENT_TYPE,
                "attachments": self.attachments,
                "references": self.references,
            }
        ]


def _image_attachment(ref: AssetRef) -> Dict[str, Any]:
    name = ref.name or ref.storage_key.rsplit("/", 1)[-1] or f"image.{ref.extension or 'png'}"
    return {
        "type": "vlm_image",
        "identifier": str(uuid.uuid4()),
        "name": name,
        "key": ref.storage_key,
        "file_review_state": 3,
        "file_parse_state": 3,
        "option": {"width": ref.width or 1, "height": ref.height or 1},
    }


class MessagePacker:
    """Build the upstream payload from messages and uploaded asset refs.

    Parameters:
        plain: Strategy for single messages and continued conversations.
        delimited: Strategy for fresh multi-turn histories.
    """

    def __init__(
        self,
        plain: Optional[HistoryStrategy] = None,
        delimited: Optional[HistoryStrategy] = None,
        *,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.plain = plain or PlainConcatenation()
        self.delimited = delimited or RoleDelimitedHistory()
        self._logger = logger or get_logger("gateway.doubao.packer")

    def select_strategy(self, messages: Sequence[Message], has_conversation_context: bool) -> HistoryStrategy:
        if has_conversation_context or len(messages) < 2:
            return self.plain
        return self.delimited

    def pack(
        self,
        messages: Sequence[Message],
        asset_refs: Sequence[Optional[AssetRef]] = (),
        has_conversation_context: bool = False,
    ) -> UpstreamPayload:
        """Render the conversation and attach committed images.

        The caller's message list is never mutated.
        """
        ctx = LogContext(upstream="doubao")
        history: List[Message] = list(messages)
        strategy = self.select_strategy(history, has_conversation_context)
        last = history[-1] if history else None

        if strategy is self.delimited and last is not None and (
            last.has_part_type("image") or last.has_part_type("file")
        ):
            history.insert(len(history) - 1, Message(role="system", content=ATTACHMENT_FOCUS_PROMPT))
            log_event(self._logger, "packer.focus_prompt_inserted", ctx)

        refs = [ref for ref in asset_refs if ref is not None]
        image_refs = [ref for ref in refs if ref.kind == "image"]
        committed = [ref for ref in image_refs if ref.is_committed_image()]
        if len(committed) != len(image_refs):
            log_event(
                self._logger,
                "packer.images_dropped",
                ctx,
                level=logging.WARNING,
                dropped=len(image_refs) - len(committed),
            )
        attachments = [_image_attachment(ref) for ref in committed]

        if attachments or (last is not None and last.has_part_type("image")):
            text = strip_inline_data("\n".join(last.text_parts()) if last else "")
            source = "last_message"
        else:
            text = strip_inline_data(strategy.render(history))
            source = "history"

        log_event(
            self._logger,
            "packer.packed",
            ctx,
            strategy=type(strategy).__name__,
            text_source=source,
            text_length=len(text),
            images=len(attachments),
            files=len(refs) - len(image_refs),
        )
        return UpstreamPayload(text=text, attachments=attachments)


__all__ = [
    "ATTACHMENT_FOCUS_PROMPT",
    "HistoryStrategy",
    "PlainConcatenation",
    "RoleDelimitedHistory",
    "MessagePacker",
    "UpstreamPayload",
    "clean_part_text",
    "strip_inline_data",
]
