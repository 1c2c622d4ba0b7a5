"""
Gateway domain models public surface.

This module re-exports the one-class-per-file implementations under
``doubao_gateway.base.models_parts`` to keep a stable import path.
"""

from .models_parts.content_part import ContentPart, ContentPartType
from .models_parts.message import Message, Role
from .models_parts.asset_ref import (
    COMMITTED_IMAGE_KEY_RE,
    PLACEHOLDER_STORAGE_KEY,
    AssetKind,
    AssetRef,
)
from .models_parts.upload_credential import UploadCredential
from .models_parts.staged_object import StagedObject
from .models_parts.upstream_event import UpstreamEvent, UpstreamEventType
from .models_parts.completion import (
    DONE_FRAME,
    MODEL_NAME,
    PLACEHOLDER_USAGE,
    CompletionChunk,
    CompletionObject,
)

__all__ = [
    "ContentPart",
    "ContentPartType",
    "Message",
    "Role",
    "AssetRef",
    "AssetKind",
    "COMMITTED_IMAGE_KEY_RE",
    "PLACEHOLDER_STORAGE_KEY",
    "UploadCredential",
    "StagedObject",
    "UpstreamEvent",
    "UpstreamEventType",
    "CompletionChunk",
    "CompletionObject",
    "MODEL_NAME",
    "PLACEHOLDER_USAGE",
    "DONE_FRAME",
]
