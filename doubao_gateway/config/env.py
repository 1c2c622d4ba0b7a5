"""doubao_gateway.config.env
=========================

Environment variable conventions for the gateway.

Every key of a config section maps to ``<SECTION>_<KEY>`` in upper case,
e.g. ``DOUBAO_BASE_URL`` or ``DOUBAO_MAX_RETRIES``. Values read from the
environment are strings; :func:`coerce_like` converts them to the type of
the default they override.
"""

from __future__ import annotations

import os
from typing import Any, Dict, Iterable, Optional


def is_placeholder(val: Optional[str]) -> bool:
    """Return True if the provided string looks like a placeholder/test value.

    Heuristics: contains 'placeholder', 'changeme', 'example', or starts with
    'test_'. The check is case-insensitive.
    """
    if val is None:
        return False
    v = str(val).strip().lower()
    return (
        "placeholder" in v
        or "changeme" in v
        or "example" in v
        or v.startswith("test_")
    )


def env_var_name(section: str, key: str) -> str:
    return f"{section.upper()}_{key.upper()}"


def coerce_like(default: Any, raw: str) -> Any:
    """Convert ``raw`` to the type of ``default``; unparseable values stay strings."""
    if isinstance(default, bool):
        return raw.strip().lower() in ("1", "true", "yes", "on")
    if isinstance(default, int):
        try:
            return int(raw)
        except ValueError:
            return raw
    if isinstance(default, float):
        try:
            return float(raw)
        except ValueError:
            return raw
    return raw


def read_env_section(section: str, keys: Iterable[str], defaults: Dict[str, Any]) -> Dict[str, Any]:
    """Collect ``<SECTION>_<KEY>`` overrides for ``keys``, skipping placeholders."""
    out: Dict[str, Any] = {}
    for key in keys:
        raw = os.getenv(env_var_name(section, key))
        if raw is None or raw == "" or is_placeholder(raw):
            continue
        out[key] = coerce_like(defaults.get(key), raw)
    return out


__all__ = ["is_placeholder", "env_var_name", "coerce_like", "read_env_section"]
