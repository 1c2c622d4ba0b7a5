"""JSON log line rendering for the gateway loggers.

:class:`JsonFormatter` emits one flat JSON object per record: timestamp,
level, logger, the structured event keys and any ``extra`` attributes.
Free-text messages and tracebacks pass through :func:`mask_base64`, so a
stray data URI in an exception message never reaches a log sink.
"""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict

from .redaction import mask_base64

ISO = "%Y-%m-%dT%H:%M:%S.%fZ"

# attributes every LogRecord carries; anything else came in through ``extra``
_STANDARD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", "taskName"}


class JsonFormatter(logging.Formatter):
    """Render records produced by ``log_event`` as single-line JSON.

    ``log_event`` messages are already JSON objects; their keys are merged
    into the line instead of being double-encoded under ``msg``.
    """

    def format(self, record: logging.LogRecord) -> str:  # pragma: no cover - trivial formatting
        line: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).strftime(ISO),
            "level": record.levelname,
            "logger": record.name,
        }
        text = record.getMessage()
        structured = _as_event(text)
        if structured is None:
            line["msg"] = mask_base64(text)
        else:
            line.update(structured)
        if record.exc_info:
            line["exc"] = mask_base64(self.formatException(record.exc_info))
        for key, value in vars(record).items():
            if key.startswith("_") or key in _STANDARD_ATTRS or key in line:
                continue
            line[key] = value
        return json.dumps(line, ensure_ascii=False, default=str)


def _as_event(text: str) -> Dict[str, Any] | None:
    if not text.startswith("{"):
        return None
    try:
        parsed = json.loads(text)
    except ValueError:
        return None
    return parsed if isinstance(parsed, dict) else None


__all__ = ["JsonFormatter", "ISO"]
