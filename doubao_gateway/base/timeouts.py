"""Unified timeout configuration for upstream calls.

This module centralizes the timeout budgets used across the gateway so that
no call site carries an ad-hoc numeric literal. Every outbound request picks
one of the phase budgets below and passes it to ``httpx`` as a per-request
timeout.

Key Components
--------------
TimeoutConfig
    Dataclass capturing normalized timeout values per phase.

get_timeout_config()
    Returns a process-cached configuration, parsing environment overrides on
    first use. Supported environment variables (all optional):
        GATEWAY_TIMEOUT_METADATA_SECONDS
        GATEWAY_TIMEOUT_COMPLETION_SECONDS
        GATEWAY_TIMEOUT_TRANSFER_SECONDS
        GATEWAY_TIMEOUT_SIGNED_SECONDS

Phase budgets
-------------
metadata    credential acquisition, pre-check HEAD requests, deletion, token status
completion  the upstream streaming chat call
transfer    binary asset download and upload
signed      Request-Signer-signed Apply/Commit calls
"""
from __future__ import annotations

from dataclasses import dataclass
import os


@dataclass(frozen=True)
class TimeoutConfig:
    """Container for normalized timeout values (seconds)."""

    metadata_timeout_seconds: float = 15.0
    completion_timeout_seconds: float = 300.0
    transfer_timeout_seconds: float = 60.0
    signed_timeout_seconds: float = 30.0


_CACHED: TimeoutConfig | None = None
_ENV_GUARD: str | None = None

_ENV_NAMES = (
    "GATEWAY_TIMEOUT_METADATA_SECONDS",
    "GATEWAY_TIMEOUT_COMPLETION_SECONDS",
    "GATEWAY_TIMEOUT_TRANSFER_SECONDS",
    "GATEWAY_TIMEOUT_SIGNED_SECONDS",
)


def _parse_env_float(name: str, default: float) -> float:
    """Parse an environment variable as a positive float with a fallback default."""
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        val = float(raw)
        return val if val > 0 else default
    except ValueError:  # pragma: no cover - defensive
        return default


def get_timeout_config() -> TimeoutConfig:
    """Return the process-cached `TimeoutConfig` instance.

    The cache is refreshed when any of the override variables changes so
    tests can adjust budgets with ``monkeypatch.setenv``.
    """
    global _CACHED, _ENV_GUARD  # noqa: PLW0603 - intentional, documented module cache
    cur_guard = "/".join(os.getenv(name, "") for name in _ENV_NAMES)
    if _CACHED is not None and _ENV_GUARD == cur_guard:
        return _CACHED

    defaults = TimeoutConfig()
    _CACHED = TimeoutConfig(
        metadata_timeout_seconds=_parse_env_float(_ENV_NAMES[0], defaults.metadata_timeout_seconds),
        completion_timeout_seconds=_parse_env_float(_ENV_NAMES[1], defaults.completion_timeout_seconds),
        transfer_timeout_seconds=_parse_env_float(_ENV_NAMES[2], defaults.transfer_timeout_seconds),
        signed_timeout_seconds=_parse_env_float(_ENV_NAMES[3], defaults.signed_timeout_seconds),
    )
    _ENV_GUARD = cur_guard
    return _CACHED


__all__ = [
    "TimeoutConfig",
    "get_timeout_config",
]
