"""
Structured content part model for inbound chat messages.

Defines the `ContentPart` dataclass and its `ContentPartType` literal. Only
three kinds of part reach the gateway core: text, image references and file
references. Image/file references carry a ``url`` that is either an http(s)
URL or inline data (a data URI or bare base64).
"""
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Literal, Optional


ContentPartType = Literal[
    "text",   # Plain text content
    "image",  # Image reference (URL or inline data)
    "file",   # File reference (URL or inline data)
]


@dataclass
class ContentPart:
    """A single piece of structured message content.

    Attributes:
        type: The semantic kind of the part.
        text: Text for ``"text"`` parts.
        url: Source reference for ``"image"`` and ``"file"`` parts.
    """

    type: ContentPartType
    text: Optional[str] = None
    url: Optional[str] = None

    def is_attachment(self) -> bool:
        """Return True for image/file parts carrying a source reference."""
        return self.type in ("image", "file") and bool(self.url)

    def to_dict(self) -> Dict[str, Any]:
        """Return a JSON-serializable dictionary representation of the object."""
        return asdict(self)


__all__ = [
    "ContentPart",
    "ContentPartType",
]
