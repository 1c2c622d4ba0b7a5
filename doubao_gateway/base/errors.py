"""Unified gateway error taxonomy public surface.

This module re-exports the one-class-per-file implementations under
``doubao_gateway.base.errors_parts`` to keep a stable import path.
"""

from .errors_parts.error_code import ErrorCode
from .errors_parts.gateway_error import (
    GatewayError,
    InvalidRemoteAsset,
    StreamFramingError,
    UploadFailed,
    UpstreamRequestFailed,
)
from .errors_parts.classification import TRANSIENT_CODES, classify_exception, code_for_status

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
