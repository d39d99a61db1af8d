"""Retry pattern with exponential backoff.

Used for transient store-read failures only. Authorization decisions are
never retried: AuthorizationError and UnauthenticatedError are always
treated as non-retryable, whatever the caller configures.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from functools import wraps
from typing import (
    TYPE_CHECKING,
    Any,
    Awaitable,
    Callable,
    Optional,
    Tuple,
    Type,
    TypeVar,
    Union,
)

from domain.errors import AuthorizationError, UnauthenticatedError

if TYPE_CHECKING:
    from config.settings import ResilienceSettings

logger = logging.getLogger(__name__)

T = TypeVar("T")
ExceptionTypes = Union[Type[Exception], Tuple[Type[Exception], ...]]

# Decisions, not failures
NEVER_RETRY: Tuple[Type[Exception], ...] = (AuthorizationError, UnauthenticatedError)


class RetryExhausted(Exception):
    """Raised when all retry attempts have been exhausted."""

    def __init__(
        self,
        message: str,
        attempts: int,
        last_exception: Optional[Exception] = None
    ):
        super().__init__(message)
        self.attempts = attempts
        self.last_exception = last_exception


@dataclass
class RetryConfig:
    """Configuration for retry behavior.

    Attributes:
        max_attempts: Maximum number of attempts (including the first).
        base_delay: Delay before the first retry in seconds.
        max_delay: Upper bound for any single delay in seconds.
        backoff_multiplier: Growth factor between consecutive delays.
        jitter: Random jitter as a fraction of the delay (0-1).
        retryable_exceptions: Exception types that trigger a retry.
        on_retry: Callback(attempt, exception, delay) before each retry.
    """
    max_attempts: int = 3
    base_delay: float = 0.5
    max_delay: float = 30.0
    backoff_multiplier: float = 2.0
    jitter: float = 0.1
    retryable_exceptions: ExceptionTypes = (Exception,)
    on_retry: Optional[Callable[[int, Exception, float], None]] = None

    @classmethod
    def from_settings(cls, settings: "ResilienceSettings") -> "RetryConfig":
        return cls(
            max_attempts=settings.retry_max_attempts,
            base_delay=settings.retry_initial_delay,
            max_delay=settings.retry_max_delay,
            backoff_multiplier=settings.retry_backoff_multiplier,
            jitter=settings.retry_jitter,
        )

    def calculate_delay(self, attempt: int) -> float:
        """Delay before retrying after the given (1-indexed) attempt."""
        delay = self.base_delay * (self.backoff_multiplier ** (attempt - 1))
        delay = min(delay, self.max_delay)

        if self.jitter > 0:
            jitter_range = delay * self.jitter
            delay = max(0.0, delay + random.uniform(-jitter_range, jitter_range))

        return delay

    def should_retry(self, exception: Exception) -> bool:
        """Determine if an exception should trigger a retry."""
        if isinstance(exception, NEVER_RETRY):
            return False
        return isinstance(exception, self.retryable_exceptions)


def async_retry(
    config: Optional[RetryConfig] = None,
    **kwargs: Any,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """Decorator for async functions with retry logic.

    Usage:
        @async_retry(max_attempts=3, base_delay=0.5)
        async def load_rows():
            ...

        # Or wrap at call time with a config object:
        rows = await async_retry(config=cfg)(store.query_resource)(rtype, query)

    Raises:
        RetryExhausted: every attempt failed with a retryable exception.
        The original exception for non-retryable failures.
    """
    retry_config = config or RetryConfig(**kwargs)

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        name = getattr(func, "__qualname__", repr(func))

        @wraps(func)
        async def wrapper(*args: Any, **kw: Any) -> T:
            for attempt in range(1, retry_config.max_attempts + 1):
                try:
                    return await func(*args, **kw)
                except Exception as e:
                    if not retry_config.should_retry(e):
                        raise

                    if attempt >= retry_config.max_attempts:
                        logger.warning(
                            f"Retry exhausted for {name} after {attempt} attempts: {e}"
                        )
                        raise RetryExhausted(
                            f"Retry exhausted after {attempt} attempts",
                            attempts=attempt,
                            last_exception=e,
                        ) from e

                    delay = retry_config.calculate_delay(attempt)
                    logger.info(
                        f"Retry {attempt}/{retry_config.max_attempts} for {name} in {delay:.2f}s: {e}"
                    )
                    if retry_config.on_retry:
                        retry_config.on_retry(attempt, e, delay)

                    await asyncio.sleep(delay)

            raise RetryExhausted(
                f"Retry exhausted after {retry_config.max_attempts} attempts",
                attempts=retry_config.max_attempts,
            )

        return wrapper
    return decorator
