"""
Target-format completion outputs.

`CompletionChunk` is one ``chat.completion.chunk`` unit of a live sequence;
`CompletionObject` is the buffered ``chat.completion`` result. Both render to
the wire dictionaries consumed by chat-completion clients via ``to_dict``.
"""
from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

MODEL_NAME = "doubao"

# Upstream reports no token accounting; clients expect the block present.
PLACEHOLDER_USAGE: Dict[str, int] = {"prompt_tokens": 1, "completion_tokens": 1, "total_tokens": 2}


def _unix_now() -> int:
    return int(time.time())


@dataclass(frozen=True)
class CompletionChunk:
    """An incremental text delta plus a nullable finish reason."""

    id: str
    content: str = ""
    finish_reason: Optional[str] = None
    created: int = field(default_factory=_unix_now)
    model: str = MODEL_NAME
    include_usage: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "model": self.model,
            "object": "chat.completion.chunk",
            "choices": [
                {
                    "index": 0,
                    "delta": {"role": "assistant", "content": self.content},
                    "finish_reason": self.finish_reason,
                }
            ],
            "created": self.created,
        }
        if self.include_usage:
            data["usage"] = dict(PLACEHOLDER_USAGE)
        return data

    def to_sse(self) -> str:
        """Render the chunk as one ``data: <json>`` event frame."""
        return f"data: {json.dumps(self.to_dict(), ensure_ascii=False)}\n\n"


@dataclass
class CompletionObject:
    """The full accumulated text plus a finish reason (``stop`` on success)."""

    id: str
    content: str
    finish_reason: str = "stop"
    created: int = field(default_factory=_unix_now)
    model: str = MODEL_NAME

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "model": self.model,
            "object": "chat.completion",
            "choices": [
                {
                    "index": 0,
                    "message": {"role": "assistant", "content": self.content},
                    "finish_reason": self.finish_reason,
                }
            ],
            "usage": dict(PLACEHOLDER_USAGE),
            "created": self.created,
        }


DONE_FRAME = "data: [DONE]\n\n"

__all__ = [
    "CompletionChunk",
    "CompletionObject",
    "MODEL_NAME",
    "PLACEHOLDER_USAGE",
    "DONE_FRAME",
]
