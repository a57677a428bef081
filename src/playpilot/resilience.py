"""
Retry policy with linear backoff.

Used for actions that may fail transiently (input device busy, target
briefly outside the safe area while a window settles).
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar

from playpilot.errors import ActuationError, InvalidCoordinateError
from playpilot.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


async def sleep_ms(ms: float) -> None:
    """Suspend the current task for ``ms`` milliseconds."""
    await asyncio.sleep(ms / 1000.0)


@dataclass
class RetryPolicy:
    """Configuration for retry behavior."""

    max_attempts: int = 3
    backoff_ms: float = 500.0

    # Specific error handling
    retryable_exceptions: tuple = (ActuationError, InvalidCoordinateError)

    def __post_init__(self) -> None:
        self.max_attempts = max(1, self.max_attempts)

    def get_delay(self, attempt: int) -> float:
        """Delay in ms after the given (1-based) failed attempt."""
        return self.backoff_ms * attempt

    def is_retryable(self, error: Exception) -> bool:
        return isinstance(error, self.retryable_exceptions)


async def retry_with_backoff(
    func: Callable[..., Awaitable[T]],
    *args: Any,
    policy: Optional[RetryPolicy] = None,
    sleep: Optional[Sleep] = None,
    on_retry: Optional[Callable[[int, Exception], None]] = None,
    **kwargs: Any,
) -> T:
    """
    Execute an async function with retry and backoff.

    Args:
        func: Async function to execute
        *args: Function arguments
        policy: Retry policy configuration
        sleep: Async sleep taking milliseconds
        on_retry: Callback on each retry (attempt, error)
        **kwargs: Function keyword arguments

    Returns:
        Function result

    Raises:
        The last error once all attempts are exhausted, or the first
        non-retryable error
    """
    policy = policy or RetryPolicy()
    sleep = sleep or sleep_ms

    for attempt in range(1, policy.max_attempts + 1):
        try:
            return await func(*args, **kwargs)
        except Exception as e:
            if not policy.is_retryable(e):
                raise

            logger.warning(
                "Attempt failed",
                attempt=attempt,
                max_attempts=policy.max_attempts,
                error=str(e),
            )
            if attempt >= policy.max_attempts:
                raise

            if on_retry:
                on_retry(attempt, e)
            await sleep(policy.get_delay(attempt))

    # Unreachable: the loop always returns or raises
    raise AssertionError("retry loop exited without result")
