"""Retry delay strategies and a generic async retry helper."""

import asyncio
import inspect
import logging
import random
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

SleepFunc = Callable[[float], Awaitable[None]]
RetryCallbackFunc = Callable[[int, BaseException, float], Awaitable[None] | None]


class RetryStrategy(ABC):
    """Strategy for computing the wait before a retry."""

    @abstractmethod
    def get_delay(self, attempt: int) -> float:
        """
        Seconds to wait after a failed attempt.

        Args:
            attempt: Number of the attempt that just failed (1-indexed)

        Returns:
            Delay in seconds
        """
        ...


class LinearBackoffStrategy(RetryStrategy):
    """Delay grows linearly with the attempt number, plus random jitter."""

    def __init__(self, base_delay: float = 1.0, max_jitter: float = 0.5):
        """
        Initialize linear backoff strategy.

        Args:
            base_delay: Seconds multiplied by the attempt number
            max_jitter: Upper bound of the uniform random jitter in seconds
        """
        self.base_delay = base_delay
        self.max_jitter = max_jitter

    def get_delay(self, attempt: int) -> float:
        return self.base_delay * attempt + random.uniform(0, self.max_jitter)


class ExponentialBackoffStrategy(RetryStrategy):
    """Exponential backoff with jitter and a ceiling."""

    def __init__(
        self,
        initial_delay: float = 1.0,
        exponential_base: float = 2.0,
        max_delay: float = 10.0,
        max_jitter: float = 0.5,
    ):
        """
        Initialize exponential backoff strategy.

        Args:
            initial_delay: Delay after the first failure in seconds
            exponential_base: Multiplier applied per additional failure
            max_delay: Ceiling on the delay, jitter included
            max_jitter: Upper bound of the uniform random jitter in seconds
        """
        self.initial_delay = initial_delay
        self.exponential_base = exponential_base
        self.max_delay = max_delay
        self.max_jitter = max_jitter

    def get_delay(self, attempt: int) -> float:
        delay = self.initial_delay * (self.exponential_base ** (attempt - 1))
        return min(delay + random.uniform(0, self.max_jitter), self.max_delay)


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    *,
    strategy: RetryStrategy,
    max_attempts: int,
    should_retry: Callable[[BaseException], bool] | None = None,
    on_retry: RetryCallbackFunc | None = None,
    sleep: SleepFunc = asyncio.sleep,
) -> T:
    """
    Await `operation` until it succeeds or attempts run out.

    Args:
        operation: Zero-argument coroutine function performing one attempt
        strategy: Computes the wait between attempts
        max_attempts: Total attempts including the first; values below 1 mean 1
        should_retry: Predicate deciding whether an error is worth retrying
            (default: retry every Exception)
        on_retry: Called with (failed_attempt, error, delay) before each wait
        sleep: Coroutine used to wait (injectable for tests)

    Returns:
        The result of the first successful attempt

    Raises:
        The last error once attempts are exhausted, or the first error
        that should_retry rejects
    """
    attempts = max(1, max_attempts)

    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except Exception as e:
            if attempt >= attempts:
                raise
            if should_retry is not None and not should_retry(e):
                logger.debug(f"Error not retryable: {type(e).__name__}")
                raise

            delay = strategy.get_delay(attempt)
            if on_retry is not None:
                callback_result = on_retry(attempt, e, delay)
                if inspect.isawaitable(callback_result):
                    await callback_result
            if delay > 0:
                await sleep(delay)

    # Unreachable - the loop either returns or raises
    raise RuntimeError("Unexpected: retry loop exited without a result")
