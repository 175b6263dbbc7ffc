"""Timing primitives for staggering, backoff, and cooldown delays."""

import asyncio

from chapter_aggregator.errors import CancellationError

BACKOFF_FACTOR = 1.5
STAGGER_FACTOR = 0.5


def backoff_delay(base_delay_ms: int, attempt: int) -> float:
    """Seconds to wait before retrying after failed attempt ``attempt`` (0-based)."""
    return base_delay_ms * (BACKOFF_FACTOR ** attempt) / 1000


def stagger_delay(base_delay_ms: int, position: int) -> float:
    """Seconds an item at ``position`` in its batch waits before its first request."""
    return base_delay_ms * position * STAGGER_FACTOR / 1000


async def cancellable_sleep(seconds: float, cancel_event: asyncio.Event) -> None:
    """Sleep for ``seconds`` unless ``cancel_event`` is set first.

    Raises:
        CancellationError: If the event is set before or during the sleep.
    """
    if cancel_event.is_set():
        raise CancellationError()
    if seconds <= 0:
        return
    try:
        await asyncio.wait_for(cancel_event.wait(), timeout=seconds)
    except asyncio.TimeoutError:
        return
    raise CancellationError()
