"""
AssetRef: resolved handle for one uploaded attachment.

Created by the upload pipeline and consumed exactly once by the message
packer while building the attachments of a single upstream call. Never
persisted beyond one completion.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Literal, Optional

AssetKind = Literal["image", "file"]

# Storage keys handed out by the image service after a successful commit.
COMMITTED_IMAGE_KEY_RE = re.compile(r"^tos-cn-i-")

# Storage key used for file references whose upload failed.
PLACEHOLDER_STORAGE_KEY = "upload-failed://placeholder"


@dataclass(frozen=True)
class AssetRef:
    """Attachment handle returned by the upload pipeline.

    Attributes:
        storage_key: Store URI assigned by the object-storage control plane.
        kind: ``"image"`` or ``"file"``.
        width: Sniffed pixel width for images (1 when unknown).
        height: Sniffed pixel height for images (1 when unknown).
        name: Display name (derived from the source or the store URI).
        extension: File extension without the leading dot.
    """

    storage_key: str
    kind: AssetKind
    name: str
    extension: str
    width: Optional[int] = None
    height: Optional[int] = None

    def is_committed_image(self) -> bool:
        """Return True when this is an image with a canonical committed key."""
        return self.kind == "image" and bool(COMMITTED_IMAGE_KEY_RE.match(self.storage_key))

    def is_placeholder(self) -> bool:
        return self.storage_key == PLACEHOLDER_STORAGE_KEY

    @classmethod
    def placeholder(cls, name: str = "", extension: str = "") -> "AssetRef":
        """Return the stand-in reference for a file whose upload failed."""
        return cls(storage_key=PLACEHOLDER_STORAGE_KEY, kind="file", name=name, extension=extension)


__all__ = [
    "AssetRef",
    "AssetKind",
    "COMMITTED_IMAGE_KEY_RE",
    "PLACEHOLDER_STORAGE_KEY",
]
