"""
Pydantic DTOs and validators for inbound completion requests.

Purpose
-------
Validate the normalized ``{messages, credential, assistant_id?, stream,
conversation_id?}`` record handed to the gateway by the request-serving layer
before it reaches the Doubao adapter, and convert it into the
``doubao_gateway.base.models`` dataclasses.

Content parts are accepted in the shapes chat-completion clients send:

- ``{"type": "text", "text": ...}``
- ``{"type": "image_url" | "input_image" | "image", "image_url": {"url": ...}}``
  (``image_url`` may also be a plain string)
- ``{"type": "file", "file_url": {"url": ...}}``
- bare strings (URLs, data URIs or bare base64 become image references,
  anything else becomes text)

External dependencies: Pydantic only. Validation either succeeds or raises a
``pydantic.ValidationError``.
"""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..models import ContentPart, Message
from ..inline_data import normalize_candidate


Role = Literal["system", "user", "assistant"]

_IMAGE_PART_TYPES = ("image_url", "input_image", "image")


class ContentPartDTO(BaseModel):
    """A structured content part within a message.

    Unknown keys are kept so the image/file reference shapes survive
    validation.
    """

    model_config = ConfigDict(extra="allow")

    type: str = Field(..., min_length=1)
    text: Optional[str] = None
    image_url: Optional[Union[str, Dict[str, Any]]] = None
    file_url: Optional[Dict[str, Any]] = None

    def reference_url(self) -> Optional[str]:
        """Return the image/file source reference, if this part carries one."""
        if self.type in _IMAGE_PART_TYPES:
            raw = self.image_url
            if isinstance(raw, dict):
                raw = raw.get("url")
            return raw if isinstance(raw, str) else None
        if self.type == "file" and self.file_url:
            url = self.file_url.get("url")
            return url if isinstance(url, str) else None
        return None

    def to_part(self) -> Optional[ContentPart]:
        if self.type == "text":
            return ContentPart(type="text", text=self.text or "")
        url = self.reference_url()
        if self.type in _IMAGE_PART_TYPES:
            return ContentPart(type="image", url=url)
        if self.type == "file":
            return ContentPart(type="file", url=url)
        return None


class MessageDTO(BaseModel):
    """Represents a chat message with either a text string or structured parts.

    Rules:
        - ``role`` must be one of Role.
        - ``content`` is a string or a non-empty list of parts.
    """

    role: Role
    content: Union[str, List[Union[ContentPartDTO, str]]]

    @model_validator(mode="after")
    def _validate_content(self) -> "MessageDTO":
        if isinstance(self.content, list) and not self.content:
            raise ValueError("content parts must be a non-empty list")
        return self

    def to_message(self) -> Message:
        """Convert to the ``Message`` dataclass.

        Bare strings that look like a URL or inline data become image parts;
        unsupported part types are dropped.
        """
        if isinstance(self.content, str):
            return Message(role=self.role, content=self.content)
        parts: List[ContentPart] = []
        for item in self.content:
            if isinstance(item, str):
                if normalize_candidate(item) is not None:
                    parts.append(ContentPart(type="image", url=item))
                else:
                    parts.append(ContentPart(type="text", text=item))
                continue
            part = item.to_part()
            if part is not None:
                parts.append(part)
        return Message(role=self.role, content=parts)


class CompletionRequestDTO(BaseModel):
    """Normalized inbound completion request.

    Parameters:
        messages: Ordered list of MessageDTO (non-empty, oldest first).
        credential: Caller's upstream credential (``Bearer a,b`` accepted).
        assistant_id: Optional upstream assistant id override.
        stream: Return a live chunk sequence instead of one object.
        conversation_id: Optional existing upstream conversation to continue.

    Raises:
        ValidationError: On invalid roles, empty messages or empty credential.
    """

    messages: List[MessageDTO] = Field(..., min_length=1)
    credential: str = Field(..., min_length=1)
    assistant_id: Optional[str] = None
    stream: bool = False
    conversation_id: Optional[str] = None

    @model_validator(mode="after")
    def _validate_credential(self) -> "CompletionRequestDTO":
        if not self.credential.strip():
            raise ValueError("credential must be non-empty")
        return self

    def to_messages(self) -> List[Message]:
        return [m.to_message() for m in self.messages]


__all__ = [
    "Role",
    "ContentPartDTO",
    "MessageDTO",
    "CompletionRequestDTO",
]
