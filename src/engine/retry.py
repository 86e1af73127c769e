"""
Bounded retry with a fixed delay between attempts.
Shared by order placement and the startup allowance approval.
"""

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

from src.errors import RetryExhaustedError
from src.logger import get_logger


logger = get_logger("retry")

T = TypeVar("T")


async def retry_with_delay(
    operation: Callable[[], Awaitable[T]],
    *,
    max_retries: int,
    delay_ms: int,
    description: str,
    is_success: Optional[Callable[[T], bool]] = None,
) -> T:
    """
    Run ``operation`` until it succeeds, at most ``max_retries + 1`` times.

    An attempt fails when it raises or when ``is_success`` rejects its
    result. Failed attempts are followed by a ``delay_ms`` pause unless no
    attempts remain.

    Returns:
        The first successful result

    Raises:
        RetryExhaustedError: carrying the last failed result or exception
    """
    attempts = max_retries + 1
    last_error: Optional[BaseException] = None
    last_result: Optional[T] = None

    for attempt in range(1, attempts + 1):
        try:
            result = await operation()
        except Exception as e:
            logger.error(
                f"Error during {description}",
                attempt=attempt,
                max_attempts=attempts,
                error=str(e),
            )
            last_error = e
            last_result = None
        else:
            if is_success is None or is_success(result):
                return result
            logger.warning(
                f"{description} failed, retrying" if attempt < attempts else f"{description} failed",
                attempt=attempt,
                max_attempts=attempts,
            )
            last_error = None
            last_result = result

        if attempt < attempts:
            await asyncio.sleep(delay_ms / 1000)

    raise RetryExhaustedError(
        description,
        attempts=max(attempts, 0),
        last_error=last_error,
        last_result=last_result,
    )
