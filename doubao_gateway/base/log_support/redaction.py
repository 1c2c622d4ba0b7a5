"""Redaction helpers keeping inline binary payloads out of log records.

Request bodies routinely carry data URIs and raw base64 image data. None of
that may reach a log line; these helpers mask it and bound the size of what
remains.
"""
from __future__ import annotations

import re
from typing import Any, Dict, List, Sequence

_DATA_URI_RE = re.compile(r"data:[\w.+-]+/[\w.+-]+;base64,[A-Za-z0-9+/=]+")
_BASE64_RUN_RE = re.compile(r"[A-Za-z0-9+/=]{100,}")

DEFAULT_LOG_TEXT_LIMIT = 200


def mask_base64(text: str) -> str:
    """Replace data URIs and long base64 runs with size markers."""
    if not text:
        return text
    text = _DATA_URI_RE.sub(lambda m: f"[data-uri {len(m.group(0))} chars]", text)
    return _BASE64_RUN_RE.sub(lambda m: f"[base64 {len(m.group(0))} chars]", text)


def truncate_for_log(text: str, limit: int = DEFAULT_LOG_TEXT_LIMIT) -> str:
    """Mask inline data then cut the text to ``limit`` characters."""
    masked = mask_base64(text or "")
    if len(masked) <= limit:
        return masked
    return f"{masked[:limit]}...(+{len(masked) - limit} chars)"


def _summarize_content(content: Any) -> Any:
    if isinstance(content, str):
        return truncate_for_log(content)
    if isinstance(content, (list, tuple)):
        parts: List[Dict[str, Any]] = []
        for part in content:
            ptype = getattr(part, "type", None)
            if ptype is None and isinstance(part, dict):
                ptype = part.get("type")
            if ptype == "text":
                text = getattr(part, "text", None)
                if text is None and isinstance(part, dict):
                    text = part.get("text")
                parts.append({"type": "text", "text": truncate_for_log(text or "")})
            else:
                parts.append({"type": ptype or "unknown"})
        return parts
    return type(content).__name__


def summarize_messages(messages: Sequence[Any]) -> List[Dict[str, Any]]:
    """Return a log-safe summary of a message list.

    Accepts ``Message`` dataclasses or plain mappings. Text is masked and
    truncated; non-text parts are reduced to their type.
    """
    summary: List[Dict[str, Any]] = []
    for msg in messages:
        role = getattr(msg, "role", None)
        content = getattr(msg, "content", None)
        if isinstance(msg, dict):
            role = msg.get("role")
            content = msg.get("content")
        summary.append({"role": role, "content": _summarize_content(content)})
    return summary


__all__ = ["mask_base64", "truncate_for_log", "summarize_messages", "DEFAULT_LOG_TEXT_LIMIT"]
