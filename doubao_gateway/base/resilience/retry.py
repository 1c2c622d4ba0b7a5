from __future__ import annotations

import functools
import time
from dataclasses import dataclass
from typing import Callable, Iterable, Protocol, TypeVar

from ..errors import TRANSIENT_CODES, ErrorCode, GatewayError

T = TypeVar("T")


class AttemptLogger(Protocol):  # pragma: no cover - structural protocol
    def __call__(
        self,
        *,
        attempt: int,
        max_attempts: int,
        delay: float | None,
        error: GatewayError | None,
    ) -> None: ...


@dataclass(frozen=True)
class RetryConfig:
    """Retry policy shared by the upload phases and the completion pipeline.

    ``fixed_delay`` overrides the exponential schedule with a constant pause
    between attempts. ``retryable_codes=None`` retries every ``GatewayError``.
    """

    max_attempts: int = 3
    delay_base: float = 2.0  # exponential base (delay_base ** attempt)
    fixed_delay: float | None = None
    retryable_codes: tuple[ErrorCode, ...] | None = TRANSIENT_CODES
    attempt_logger: AttemptLogger | None = None

    def delays(self) -> Iterable[float]:
        for attempt in range(self.max_attempts - 1):
            if self.fixed_delay is not None:
                yield self.fixed_delay
            else:
                yield self.delay_base**attempt

    def is_retryable(self, error: GatewayError) -> bool:
        if self.retryable_codes is None:
            return True
        return error.code in self.retryable_codes


DEFAULT_RETRY_CONFIG = RetryConfig()


def retry(config: RetryConfig = DEFAULT_RETRY_CONFIG):
    """Return a decorator applying the standardized retry policy.

    - Retries only on configured retryable error codes (all when ``None``)
    - Fixed or exponential delay between attempts
    - Preserves original function signature
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> T:
            last_exc: GatewayError | None = None
            for attempt, delay in enumerate(
                list(config.delays()) + [None]
            ):  # final attempt has delay None
                try:
                    result = func(*args, **kwargs)
                    if config.attempt_logger:
                        config.attempt_logger(
                            attempt=attempt,
                            max_attempts=config.max_attempts,
                            delay=None,
                            error=None,
                        )
                    return result
                except GatewayError as e:
                    last_exc = e
                    if config.attempt_logger:
                        config.attempt_logger(
                            attempt=attempt,
                            max_attempts=config.max_attempts,
                            delay=delay,
                            error=e,
                        )
                    if config.is_retryable(e) and (delay is not None):
                        time.sleep(delay)
                        continue
                    raise
            if last_exc is None:  # pragma: no cover - defensive
                raise RuntimeError(
                    "retry: reached terminal state without captured exception"
                )
            raise last_exc

        return wrapper

    return decorator


__all__ = [
    "AttemptLogger",
    "RetryConfig",
    "DEFAULT_RETRY_CONFIG",
    "retry",
]
