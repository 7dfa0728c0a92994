"""Backoff helpers for handlers that retry external calls."""

from __future__ import annotations

import asyncio
import random

DEFAULT_BACKOFF_BASE = 1.5
DEFAULT_BACKOFF_JITTER = 0.5
DEFAULT_MAX_DELAY = 10.0


def compute_backoff(
    attempt: int,
    base: float = DEFAULT_BACKOFF_BASE,
    jitter: float = DEFAULT_BACKOFF_JITTER,
    max_delay: float = DEFAULT_MAX_DELAY,
) -> float:
    """Delay in seconds before retry number ``attempt`` (1-based).

    Grows as ``base ** attempt`` up to ``max_delay``, plus up to ``jitter``
    seconds of random spread.
    """
    delay = min(base ** attempt, max_delay)
    return delay + random.uniform(0, jitter)


async def schedule_retry(
    attempt: int,
    base: float = DEFAULT_BACKOFF_BASE,
    jitter: float = DEFAULT_BACKOFF_JITTER,
    max_delay: float = DEFAULT_MAX_DELAY,
) -> None:
    """Sleep for the backoff delay of ``attempt``."""
    await asyncio.sleep(compute_backoff(attempt, base, jitter, max_delay))
