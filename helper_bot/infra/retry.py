"""Single-operation retry helper.

Wraps one attempt function so callers don't duplicate request-building
code in their error handlers.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def retry_async(
    attempt: Callable[[], Awaitable[T]],
    *,
    should_retry: Callable[[BaseException], bool],
    before_retry: Optional[Callable[[], Awaitable[None]]] = None,
    max_retries: int = 1,
    backoff_base: float = 0.0,
) -> T:
    """
    Run ``attempt`` and retry it while ``should_retry`` accepts the error.

    Args:
        attempt: Zero-argument coroutine function performing one try
        should_retry: Predicate deciding whether an error is retryable
        before_retry: Optional hook awaited before each retry (e.g. token refresh)
        max_retries: Number of retries after the first attempt
        backoff_base: Seconds to wait before the first retry, doubled on each
            further retry (0 retries immediately)

    Returns:
        Result of the first successful attempt

    Raises:
        The last error when it is not retryable or retries are exhausted
    """
    retries = 0
    while True:
        try:
            return await attempt()
        except Exception as e:
            if retries >= max_retries or not should_retry(e):
                raise
            retries += 1
            delay = backoff_base * 2 ** (retries - 1)
            logger.warning(
                f"Retrying after error (retry {retries}/{max_retries}, wait {delay:.1f}s): {e}"
            )
            if delay > 0:
                await asyncio.sleep(delay)
            if before_retry is not None:
                await before_retry()
