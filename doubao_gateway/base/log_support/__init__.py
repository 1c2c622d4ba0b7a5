"""Auxiliary logging helpers (formatters, context, redaction) used by base.logging."""

from .json_formatter import ISO, JsonFormatter
from .logging_context import LogContext
from .redaction import mask_base64, summarize_messages, truncate_for_log

__all__ = [
    "JsonFormatter",
    "ISO",
    "LogContext",
    "mask_base64",
    "truncate_for_log",
    "summarize_messages",
]
