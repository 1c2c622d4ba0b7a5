"""doubao_gateway package

Adapter exposing the Doubao conversational web backend through the
chat-completion wire format.

Purpose:
    Accept a normalized completion request (messages, session credential,
    optional assistant and conversation ids), stage its attachments in the
    upstream's object storage, run the upstream chat call and return either a
    ``chat.completion`` object or a live sequence of
    ``chat.completion.chunk`` frames.

Public API (re-exported):
    - Version: ``__version__``
    - Client: :class:`DoubaoChatClient`, :class:`DeviceProfile`
    - Inbound record: :class:`CompletionRequestDTO`
    - Outputs: :class:`CompletionObject`, :class:`CompletionChunk`,
      :class:`LiveSequence`
    - Exceptions: :class:`GatewayError`, :class:`ErrorCode` and the four
      failure kinds
"""

from .base.dto import CompletionRequestDTO
from .base.errors import (
    ErrorCode,
    GatewayError,
    InvalidRemoteAsset,
    StreamFramingError,
    UploadFailed,
    UpstreamRequestFailed,
)
from .base.models import CompletionChunk, CompletionObject, Message
from .base.streaming import LiveSequence
from .doubao import DeviceProfile, DoubaoChatClient

__version__ = "0.1.0"

__all__ = [
    # Version
    "__version__",
    # Client
    "DoubaoChatClient",
    "DeviceProfile",
    # Inbound / outputs
    "CompletionRequestDTO",
    "Message",
    "CompletionObject",
    "CompletionChunk",
    "LiveSequence",
    # Exceptions
    "ErrorCode",
    "GatewayError",
    "UpstreamRequestFailed",
    "InvalidRemoteAsset",
    "UploadFailed",
    "StreamFramingError",
]
