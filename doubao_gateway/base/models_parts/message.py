"""
Message DTO used across the gateway.

Defines the `Message` dataclass and the `Role` literal. Content is either
plain text or a list of `ContentPart` objects; order of messages in a
conversation is significant (oldest first).
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Literal, Union

from .content_part import ContentPart


Role = Literal["system", "user", "assistant"]


@dataclass
class Message:
    """A normalized chat message.

    Attributes:
        role: The role of the message author (``"system"``, ``"user"`` or
            ``"assistant"``).
        content: Either a plain text string or a list of `ContentPart` items.
    """

    role: Role
    content: Union[str, List[ContentPart]]

    def is_structured(self) -> bool:
        """Return True if the message content is a structured list of parts."""
        return isinstance(self.content, list)

    def text_parts(self) -> List[str]:
        """Return the text of every text part, in order."""
        if isinstance(self.content, str):
            return [self.content]
        return [p.text for p in self.content if p.type == "text" and p.text is not None]

    def attachment_parts(self) -> List[ContentPart]:
        """Return the image/file parts that carry a source reference."""
        if isinstance(self.content, str):
            return []
        return [p for p in self.content if p.is_attachment()]

    def has_part_type(self, part_type: str) -> bool:
        if isinstance(self.content, str):
            return False
        return any(p.type == part_type for p in self.content)

    def text_or_joined(self) -> str:
        """Return a flattened string representation of the message content.

        Text values are joined with newlines; non-text parts are represented
        by bracketed type tokens for compact logging.
        """
        if isinstance(self.content, str):
            return self.content
        parts: List[str] = []
        for p in self.content:
            if p.type == "text":
                parts.append(p.text or "")
            else:
                parts.append(f"[{p.type}]")
        return "\n".join(parts)


__all__ = [
    "Message",
    "Role",
]
