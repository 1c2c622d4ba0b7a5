"""
Structured gateway error exception types.

`GatewayError` wraps upstream, transport and asset failures with a normalized
`ErrorCode` for consistent retry handling and structured logging. The
subclasses name the four failure kinds the gateway distinguishes; each sets a
``kind`` tag that is written into every failure log record.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Optional

from .error_code import ErrorCode


@dataclass
class GatewayError(Exception):
    """Represents a structured gateway error with a normalized error code.

    Attributes:
        code: Normalized :class:`ErrorCode` classification for the failure.
        message: Human-readable error message suitable for logging.
        upstream: Upstream key where the error originated (e.g., ``"doubao"``).
        retryable: Hint for retry logic (not authoritative).
        raw: Optional original exception for diagnostics.
    """

    code: ErrorCode
    message: str
    upstream: str = "doubao"
    retryable: bool = False
    raw: Optional[Exception] = None

    kind: ClassVar[str] = "gateway_error"

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"{self.upstream} {self.kind}/{self.code.value}: {self.message}"


class UpstreamRequestFailed(GatewayError):
    """Non-zero upstream status code, malformed envelope or bad content type."""

    kind: ClassVar[str] = "upstream_request_failed"

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode = ErrorCode.UPSTREAM,
        retryable: bool = True,
        raw: Optional[Exception] = None,
    ) -> None:
        super().__init__(code=code, message=message, retryable=retryable, raw=raw)


class InvalidRemoteAsset(GatewayError):
    """A remote asset failed its pre-check or exceeds the size ceiling."""

    kind: ClassVar[str] = "invalid_remote_asset"

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode = ErrorCode.VALIDATION,
        raw: Optional[Exception] = None,
    ) -> None:
        super().__init__(code=code, message=message, retryable=False, raw=raw)


class UploadFailed(GatewayError):
    """A phase of the asset upload pipeline failed."""

    kind: ClassVar[str] = "upload_failed"

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode = ErrorCode.UPSTREAM,
        retryable: bool = False,
        raw: Optional[Exception] = None,
    ) -> None:
        super().__init__(code=code, message=message, retryable=retryable, raw=raw)


class StreamFramingError(GatewayError):
    """An upstream event frame could not be decoded."""

    kind: ClassVar[str] = "stream_framing_error"

    def __init__(self, message: str, *, raw: Optional[Exception] = None) -> None:
        super().__init__(code=ErrorCode.FRAMING, message=message, retryable=True, raw=raw)


__all__ = [
    "GatewayError",
    "UpstreamRequestFailed",
    "InvalidRemoteAsset",
    "UploadFailed",
    "StreamFramingError",
]
