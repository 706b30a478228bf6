"""Fixed-schedule retry helper shared by the idempotent API calls."""

import asyncio
import logging
from typing import Awaitable, Callable, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Delays between attempts (seconds): 3 retries, 4 attempts in total.
RETRY_DELAYS: Sequence[float] = (1.0, 2.0, 4.0)

Sleep = Callable[[float], Awaitable[None]]


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    schedule: Sequence[float] = RETRY_DELAYS,
    *,
    sleep: Sleep = asyncio.sleep,
    description: str = "request",
) -> T:
    """Run ``operation`` until it succeeds or the schedule is exhausted.

    Each failure is followed by the next delay in ``schedule``; the failure of
    the final attempt is re-raised unchanged.
    """
    attempts = len(schedule) + 1
    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except Exception as exc:
            if attempt == attempts:
                logger.warning("%s failed after %d attempts: %s", description, attempts, exc)
                raise
            delay = schedule[attempt - 1]
            logger.warning(
                "%s failed (attempt %d/%d): %s; retrying in %.1fs",
                description, attempt, attempts, exc, delay,
            )
            await sleep(delay)
