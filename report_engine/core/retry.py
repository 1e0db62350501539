"""Retry and backoff utilities for calls to external services.

Used by the delivery channel so a transient transport error does not fail
a whole report attempt. The report-level failure ceiling lives in
report_engine.services.failure_tracker and is unrelated to these retries.
"""

import asyncio
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TypeVar

from report_engine.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""

    max_attempts: int = 3
    backoff_base: float = 1.0
    backoff_max: float = 30.0
    jitter: bool = True
    retryable_exceptions: tuple[type[Exception], ...] = field(default_factory=lambda: (Exception,))


async def retry_with_backoff(
    fn: Callable[[], Awaitable[T]],
    config: RetryConfig | None = None,
    operation_name: str = "operation",
) -> T:
    """
    Execute async function with exponential backoff retry.

    Each retry waits for min(backoff_base * 2^attempt, backoff_max) seconds,
    scaled by a random factor in [0.5, 1.5) when jitter is enabled.

    Args:
        fn: Async function to execute (no arguments)
        config: Retry configuration, uses defaults if not provided
        operation_name: Name for logging purposes

    Returns:
        Result of fn()

    Raises:
        Exception: The last exception if all attempts are exhausted

    Example:
        ```python
        result = await retry_with_backoff(
            lambda: channel.send(message),
            config=RetryConfig(max_attempts=3),
            operation_name="resend:send",
        )
        ```
    """
    config = config or RetryConfig()
    attempts = max(config.max_attempts, 1)

    for attempt in range(attempts):
        try:
            return await fn()
        except config.retryable_exceptions as e:
            if attempt + 1 == attempts:
                logger.bind(
                    operation=operation_name,
                    attempts=attempts,
                    error=str(e),
                ).error("retry_exhausted")
                raise

            delay = min(config.backoff_base * (2**attempt), config.backoff_max)
            if config.jitter:
                delay *= 0.5 + random.random()

            logger.bind(
                operation=operation_name,
                attempt=attempt + 1,
                max_attempts=attempts,
                delay_seconds=round(delay, 2),
                error=str(e),
            ).warning("retry_attempt")
            await asyncio.sleep(delay)

    raise RuntimeError("Unexpected state in retry_with_backoff")
