"""Retry policy primitives."""

from .retry import DEFAULT_RETRY_CONFIG, AttemptLogger, RetryConfig, retry

__all__ = ["AttemptLogger", "RetryConfig", "DEFAULT_RETRY_CONFIG", "retry"]
