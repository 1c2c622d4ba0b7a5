"""Unified configuration layer for the gateway.

Goals
-----
* Centralize defaults (base URL, version codes, signing scope, retry policy).
* Merge sources in a predictable order (later wins):
    1. Built-in defaults (``config/defaults.py``)
    2. Optional external config file (JSON or YAML) pointed to by
       ``GATEWAY_CONFIG_FILE``
    3. Environment variables (``DOUBAO_BASE_URL``, ``DOUBAO_MAX_RETRIES``, ...)
    4. In-code overrides passed to :func:`get_gateway_config`
* A ``.env`` file (path from ``DOTENV_FILE``, default ``.env``) is loaded once
  before environment variables are read.

External Config File
--------------------
Structure example::

    doubao:
      assistant_id: "497858"
      max_retries: 2
      retry_delay_seconds: 1

Public API
----------
* get_gateway_config(section: str = "doubao", overrides: dict | None = None) -> dict
* reset_config_cache()
"""
from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .defaults import (
    DOUBAO_DEFAULT_ASSISTANT_ID,
    DOUBAO_DEFAULT_BASE_URL,
    DOUBAO_DEFAULT_MAX_RETRIES,
    DOUBAO_DEFAULT_PC_VERSION,
    DOUBAO_DEFAULT_RETRY_DELAY_SECONDS,
    DOUBAO_DEFAULT_VERSION_CODE,
    FILE_DEFAULT_MAX_SIZE,
    IMAGEX_DEFAULT_REGION,
    IMAGEX_DEFAULT_SERVICE,
    UPLOAD_DEFAULT_MAX_WORKERS,
    UPLOAD_DEFAULT_PHASE_ATTEMPTS,
)
from .env import is_placeholder, read_env_section


DEFAULTS: Dict[str, Dict[str, Any]] = {
    "doubao": {
        "base_url": DOUBAO_DEFAULT_BASE_URL,
        "assistant_id": DOUBAO_DEFAULT_ASSISTANT_ID,
        "version_code": DOUBAO_DEFAULT_VERSION_CODE,
        "pc_version": DOUBAO_DEFAULT_PC_VERSION,
        "imagex_region": IMAGEX_DEFAULT_REGION,
        "imagex_service": IMAGEX_DEFAULT_SERVICE,
        "max_retries": DOUBAO_DEFAULT_MAX_RETRIES,
        "retry_delay_seconds": DOUBAO_DEFAULT_RETRY_DELAY_SECONDS,
        "upload_phase_attempts": UPLOAD_DEFAULT_PHASE_ATTEMPTS,
        "upload_max_workers": UPLOAD_DEFAULT_MAX_WORKERS,
        "file_max_size": FILE_DEFAULT_MAX_SIZE,
    },
}


_FILE_CACHE: Optional[Dict[str, Any]] = None
_DOTENV_LOADED = False


def _load_dotenv_once() -> None:
    """Lightweight .env loader.

    Parses KEY=VALUE lines, ignoring comments and blank lines. Existing
    environment variables win unless their value looks like a placeholder.
    """
    global _DOTENV_LOADED
    if _DOTENV_LOADED:
        return
    path = os.getenv("DOTENV_FILE", ".env")
    if not os.path.isfile(path):
        _DOTENV_LOADED = True
        return
    try:
        with open(path, "r", encoding="utf-8") as fh:
            for line in fh:
                line = line.strip()
                if not line or line.startswith("#") or "=" not in line:
                    continue
                k, v = line.split("=", 1)
                k = k.strip()
                v = v.strip().strip('"').strip("'")
                if k and (k not in os.environ or is_placeholder(os.environ.get(k))):
                    os.environ[k] = v
    finally:
        _DOTENV_LOADED = True


def _load_external_config() -> Dict[str, Any]:
    """Load and cache the JSON/YAML file named by ``GATEWAY_CONFIG_FILE``.

    JSON is tried first; YAML is the fallback. Unreadable or non-mapping
    content yields an empty mapping.
    """
    global _FILE_CACHE
    if _FILE_CACHE is not None:
        return _FILE_CACHE
    path = os.getenv("GATEWAY_CONFIG_FILE")
    if not path or not Path(path).exists():
        _FILE_CACHE = {}
        return _FILE_CACHE
    text = Path(path).read_text(encoding="utf-8")
    data: Any
    try:
        data = json.loads(text)
    except ValueError:
        try:
            data = yaml.safe_load(text) or {}
        except yaml.YAMLError:
            data = {}
    if not isinstance(data, dict):
        data = {}
    _FILE_CACHE = data
    return data


def reset_config_cache() -> None:
    """Forget the cached config file and .env state (tests)."""
    global _FILE_CACHE, _DOTENV_LOADED
    _FILE_CACHE = None
    _DOTENV_LOADED = False


def get_gateway_config(section: str = "doubao", overrides: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Return merged configuration for a section.

    Merge order (later wins): defaults -> external config -> env vars -> overrides
    """
    _load_dotenv_once()
    name = (section or "").lower().strip()
    defaults = DEFAULTS.get(name, {})
    cfg: Dict[str, Any] = dict(defaults)

    file_cfg = _load_external_config().get(name)
    if isinstance(file_cfg, dict):
        cfg |= file_cfg

    cfg |= read_env_section(name, defaults.keys(), defaults)

    if overrides:
        cfg |= {k: v for k, v in overrides.items() if v is not None}
    return cfg


__all__ = [
    "get_gateway_config",
    "reset_config_cache",
    "DEFAULTS",
]
