"""
Generic retry wrapper for async operations.

Runs an operation up to a fixed number of attempts and reports the outcome
as a tagged result instead of raising, so callers decide how to surface
exhausted retries.

Example:
    outcome = await retry_async(lambda: backend.generate(text, chat_id), attempts=3)
    if outcome.ok:
        print(outcome.value)
    else:
        logger.error(outcome.error)
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Optional, TypeVar

from whatsapp_ai_bot.core.exceptions import RetriesExhaustedError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Maps the number of the attempt that just failed (1-based) to a delay in seconds
BackoffPolicy = Callable[[int], float]


def no_backoff(attempt: int) -> float:
    """Retry immediately."""
    return 0.0


def exponential_backoff(
    initial: float = 0.5,
    factor: float = 2.0,
    max_delay: float = 10.0,
) -> BackoffPolicy:
    """Build a policy waiting initial, initial*factor, ... capped at max_delay."""
    def policy(attempt: int) -> float:
        return min(max_delay, initial * (factor ** max(0, attempt - 1)))
    return policy


@dataclass
class RetryOutcome(Generic[T]):
    """
    Result of a retried operation.

    Attributes:
        value: Result of the successful attempt (None on failure)
        error: RetriesExhaustedError when every attempt failed
        attempts: Number of attempts actually made
    """
    value: Optional[T] = None
    error: Optional[RetriesExhaustedError] = None
    attempts: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        """Return the value, or re-raise the error of the last attempt."""
        if self.error is not None:
            if self.error.last_error is not None:
                raise self.error.last_error
            raise self.error
        return self.value


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    attempts: int = 3,
    backoff: BackoffPolicy = no_backoff,
    description: str = "operation",
) -> RetryOutcome[T]:
    """
    Run operation until it succeeds or attempts are used up.

    Args:
        operation: Zero-argument coroutine factory, called once per attempt
        attempts: Maximum number of attempts (>= 1)
        backoff: Delay policy applied between failed attempts
        description: Label used in log messages

    Returns:
        RetryOutcome with the value or the exhausted-retries error
    """
    if attempts < 1:
        raise ValueError("attempts must be >= 1")

    last_error: Optional[Exception] = None
    for attempt in range(1, attempts + 1):
        try:
            value = await operation()
            if attempt > 1:
                logger.info(f"{description} succeeded on attempt {attempt}/{attempts}")
            return RetryOutcome(value=value, attempts=attempt)
        except Exception as e:
            last_error = e
            logger.warning(f"{description} failed (attempt {attempt}/{attempts}): {e}")

        if attempt < attempts:
            delay = backoff(attempt)
            if delay > 0:
                await asyncio.sleep(delay)

    return RetryOutcome(
        error=RetriesExhaustedError(attempts, last_error),
        attempts=attempts,
    )
