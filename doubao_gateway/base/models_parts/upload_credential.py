"""
UploadCredential: short-lived STS credential scoped to one asset upload.

Each asset upload acquires its own credential; instances are never cached or
shared across assets.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping


@dataclass(frozen=True)
class UploadCredential:
    """STS-style access/secret/session-token triple plus its service scope."""

    service_id: str
    upload_host: str
    access_key: str
    secret_key: str
    session_token: str = ""

    def __repr__(self) -> str:  # pragma: no cover - keep secrets out of logs
        return (
            f"UploadCredential(service_id={self.service_id!r}, "
            f"upload_host={self.upload_host!r}, access_key={self.access_key[:4]!r}...)"
        )

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "UploadCredential":
        """Build a credential from the prepare-upload response ``data`` object.

        Raises ``KeyError`` when the auth token block or one of its keys is
        missing; callers translate that into an upload failure.
        """
        token = data["upload_auth_token"]
        return cls(
            service_id=str(data.get("service_id") or ""),
            upload_host=str(data.get("upload_host") or ""),
            access_key=token["access_key"],
            secret_key=token["secret_key"],
            session_token=token.get("session_token") or "",
        )


__all__ = ["UploadCredential"]
