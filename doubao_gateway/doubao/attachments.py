"""Attachment reference extraction from the latest message.

Only the last message of a conversation is scanned; earlier messages are
plain history. Each image/file part is normalized with
:func:`normalize_candidate` (data URIs and URLs as-is, bare base64 wrapped in
a sniffed data URI); parts that normalize to nothing are skipped.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Literal, Sequence

from ..base.inline_data import normalize_candidate
from ..base.logging import get_logger, log_event
from ..base.models import Message

_logger = get_logger("gateway.doubao.attachments")


@dataclass(frozen=True)
class AttachmentSource:
    """One upload candidate: normalized source plus the part kind it came from."""

    source: str
    part_type: Literal["image", "file"]

    @property
    def is_inline(self) -> bool:
        return self.source.startswith("data:")


def extract_reference_urls(messages: Sequence[Message]) -> List[AttachmentSource]:
    """Return the upload candidates of the last message, in part order."""
    if not messages:
        return []
    last = messages[-1]
    sources: List[AttachmentSource] = []
    for part in last.attachment_parts():
        normalized = normalize_candidate(part.url)
        if normalized is not None:
            sources.append(AttachmentSource(source=normalized, part_type=part.type))  # type: ignore[arg-type]
    log_event(_logger, "attachments.extracted", count=len(sources))
    return sources


__all__ = ["AttachmentSource", "extract_reference_urls"]
