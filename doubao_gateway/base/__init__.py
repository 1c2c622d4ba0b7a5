"""
Gateway Base Package

Upstream-agnostic building blocks shared by the Doubao adapter:

- Models: dataclasses for messages, asset handles and completion outputs
- DTOs: pydantic validation of the inbound completion record
- Errors: normalized error taxonomy and exception classification
- Resilience: retry policy
- HTTP: pooled ``httpx`` clients
- Streaming: incremental SSE parsing and live chunk sequences
"""

from .errors import (
    ErrorCode,
    GatewayError,
    InvalidRemoteAsset,
    StreamFramingError,
    UploadFailed,
    UpstreamRequestFailed,
    classify_exception,
)
from .models import (
    AssetRef,
    CompletionChunk,
    CompletionObject,
    ContentPart,
    ContentPartType,
    Message,
    Role,
    StagedObject,
    UploadCredential,
    UpstreamEvent,
)
from .timeouts import TimeoutConfig, get_timeout_config
from .resilience import RetryConfig, retry
from .streaming import LiveSequence, SSEEvent, SSEParser, iter_sse_events

__all__ = [
    # Models
    "Role",
    "ContentPartType",
    "ContentPart",
    "Message",
    "AssetRef",
    "UploadCredential",
    "StagedObject",
    "UpstreamEvent",
    "CompletionChunk",
    "CompletionObject",
    # Errors
    "ErrorCode",
    "GatewayError",
    "UpstreamRequestFailed",
    "InvalidRemoteAsset",
    "UploadFailed",
    "StreamFramingError",
    "classify_exception",
    # Timeouts & retry
    "TimeoutConfig",
    "get_timeout_config",
    "RetryConfig",
    "retry",
    # Streaming
    "SSEEvent",
    "SSEParser",
    "iter_sse_events",
    "LiveSequence",
]
