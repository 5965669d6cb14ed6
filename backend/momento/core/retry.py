"""
Bounded retry with linear backoff for document store transactions.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def retry_with_backoff(
    func: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    delay: float = 0.3,
    non_retryable: Tuple[Type[BaseException], ...] = (),
    operation: str = "operation",
) -> T:
    """
    Call ``func`` until it succeeds or ``max_attempts`` is reached.

    The wait before attempt ``n + 1`` is ``delay * n`` seconds. Exceptions in
    ``non_retryable`` are raised immediately.

    Args:
        func: Zero-argument coroutine factory, called once per attempt
        max_attempts: Maximum number of attempts (>= 1)
        delay: Base delay in seconds
        non_retryable: Exception types that must not be retried
        operation: Label used in log messages

    Returns:
        Result of ``func``

    Raises:
        The last exception raised by ``func`` once attempts are exhausted
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    for attempt in range(1, max_attempts + 1):
        try:
            return await func()
        except non_retryable:
            raise
        except Exception as e:
            if attempt >= max_attempts:
                logger.error(f"Failed to {operation} after {attempt} attempts: {e}")
                raise

            logger.warning(f"Retrying {operation} ({attempt}/{max_attempts}): {e}")
            await asyncio.sleep(delay * attempt)

    raise RuntimeError("unreachable")  # pragma: no cover
