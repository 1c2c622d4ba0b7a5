"""Errors parts package public surface.

Re-exports individual error taxonomy components for optional direct imports.
Prefer importing from `doubao_gateway.base.errors` for the stable surface.
"""

from .error_code import ErrorCode
from .gateway_error import (
    GatewayError,
    InvalidRemoteAsset,
    StreamFramingError,
    UploadFailed,
    UpstreamRequestFailed,
)
from .classification import TRANSIENT_CODES, classify_exception, code_for_status

__all__ = [
    "ErrorCode",
    "GatewayError",
    "UpstreamRequestFailed",
    "InvalidRemoteAsset",
    "UploadFailed",
    "StreamFramingError",
    "TRANSIENT_CODES",
    "classify_exception",
    "code_for_status",
]
