"""
UpstreamEvent: one decoded frame of the upstream event stream.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Literal, Optional

UpstreamEventType = Literal["delta", "terminal", "error"]


@dataclass(frozen=True)
class UpstreamEvent:
    """Discriminated upstream frame.

    Attributes:
        event_type: ``"delta"`` (text increment), ``"terminal"`` (stream
            closed) or ``"error"`` (vendor error code).
        text: Decoded text for deltas; error message for errors.
        conversation_id: Upstream conversation id when the frame carries one.
        implicit: True for a terminal synthesized because the byte stream
            ended without an explicit close frame.
        raw: The decoded envelope, kept for diagnostics only.
    """

    event_type: UpstreamEventType
    text: str = ""
    conversation_id: Optional[str] = None
    implicit: bool = False
    raw: Optional[Dict[str, Any]] = field(default=None, repr=False, compare=False)

    @property
    def is_closing(self) -> bool:
        """Terminal and error events close the logical stream."""
        return self.event_type in ("terminal", "error")


__all__ = ["UpstreamEvent", "UpstreamEventType"]
