"""
Retry with Exponential Backoff

Retries failed async operations with a configurable backoff strategy.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryConfig:
    """Configuration for retry behavior."""

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 300.0
    exponential_base: float = 2.0
    jitter: bool = False
    retryable_exceptions: tuple[type[Exception], ...] = (
        ConnectionError,
        TimeoutError,
        OSError,
    )

    def delay_for(self, attempt: int) -> float:
        """Delay after the given failed attempt (1-based)."""
        delay = min(
            self.base_delay * (self.exponential_base ** (attempt - 1)),
            self.max_delay,
        )
        if self.jitter:
            delay = delay * (0.5 + random.random())
        return delay


async def retry_with_backoff(
    func: Callable[..., Awaitable[T]],
    *args,
    config: RetryConfig | None = None,
    on_retry: Callable[[int, Exception, float], None] | None = None,
    **kwargs,
) -> T:
    """
    Retry an async function with exponential backoff.

    Args:
        func: Async function to retry
        *args: Positional arguments for func
        config: Retry configuration
        on_retry: Optional callback(attempt, error, delay) before each retry
        **kwargs: Keyword arguments for func

    Returns:
        Result from successful function call

    Raises:
        Exception: Last retryable exception once attempts are exhausted, or
            any non-retryable exception immediately
    """
    config = config or RetryConfig()

    for attempt in range(1, config.max_attempts + 1):
        try:
            return await func(*args, **kwargs)
        except config.retryable_exceptions as e:
            if attempt == config.max_attempts:
                logger.warning(f"Retry exhausted after {attempt} attempts: {e}")
                raise

            delay = config.delay_for(attempt)
            logger.info(
                f"Attempt {attempt}/{config.max_attempts} failed: {e}. Retrying in {delay:.1f}s"
            )
            if on_retry:
                on_retry(attempt, e, delay)
            await asyncio.sleep(delay)

    raise RuntimeError("max_attempts must be at least 1")
