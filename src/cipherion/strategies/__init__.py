"""Retry strategies."""

from .retry import (
    ExponentialBackoffStrategy,
    LinearBackoffStrategy,
    RetryStrategy,
    retry_async,
)

__all__ = [
    "RetryStrategy",
    "LinearBackoffStrategy",
    "ExponentialBackoffStrategy",
    "retry_async",
]
