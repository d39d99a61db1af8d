"""Resilience patterns for store access.

Retry with exponential backoff for transient read failures.
"""

from .retry import (
    async_retry,
    RetryConfig,
    RetryExhausted,
)

__all__ = [
    "async_retry",
    "RetryConfig",
    "RetryExhausted",
]
