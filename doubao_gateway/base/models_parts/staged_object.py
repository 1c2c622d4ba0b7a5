"""
StagedObject: intermediate handle returned by the upload "apply" phase.

Consumed by the binary transfer and commit phases of the same upload.
"""
from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class StagedObject:
    """Store location and per-object authorization from the apply phase.

    Attributes:
        store_uri: Object key assigned by the storage control plane.
        auth_token: Short-lived authorization for the binary transfer.
        object_host: Storage host the bytes are uploaded to.
        session_key: Opaque session key echoed back on commit (may be empty).
    """

    store_uri: str
    auth_token: str
    object_host: str
    session_key: str = ""


__all__ = ["StagedObject"]
