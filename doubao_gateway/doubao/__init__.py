"""
Doubao web API adapter.

Exports:
- DoubaoChatClient: chat completion orchestrator (buffered and streaming)
- DeviceProfile: process-scoped device identity sent with every call
- AssetUploader: attachment upload pipeline
- MessagePacker: conversation flattening into one upstream message
- StreamTranscoder: upstream event stream to chat-completion chunks
"""

from .client import DoubaoChatClient
from .packer import MessagePacker
from .session import DeviceProfile
from .transcoder import StreamTranscoder
from .upload import AssetUploader

__all__ = [
    "DoubaoChatClient",
    "DeviceProfile",
    "AssetUploader",
    "MessagePacker",
    "StreamTranscoder",
]
