"""Tests for delay computation and cancellable sleeping."""

import asyncio
import time

import pytest

from chapter_aggregator.errors import CancellationError
from chapter_aggregator.utils.backoff import backoff_delay, cancellable_sleep, stagger_delay


@pytest.mark.parametrize(
    "attempt,expected",
    [(0, 2.0), (1, 3.0), (2, 4.5), (3, 6.75)],
)
def test_backoff_grows_by_half_each_attempt(attempt, expected):
    assert backoff_delay(2000, attempt) == pytest.approx(expected)


def test_stagger_is_half_base_delay_per_position():
    assert [stagger_delay(1000, p) for p in range(4)] == [0.0, 0.5, 1.0, 1.5]


@pytest.mark.asyncio
async def test_sleep_returns_after_timeout():
    event = asyncio.Event()
    started = time.monotonic()

    await cancellable_sleep(0.02, event)

    assert time.monotonic() - started >= 0.015


@pytest.mark.asyncio
async def test_zero_sleep_returns_immediately():
    await cancellable_sleep(0, asyncio.Event())


@pytest.mark.asyncio
async def test_sleep_raises_when_already_cancelled():
    event = asyncio.Event()
    event.set()

    with pytest.raises(CancellationError):
        await cancellable_sleep(0, event)


@pytest.mark.asyncio
async def test_sleep_wakes_early_on_cancel():
    event = asyncio.Event()
    asyncio.get_running_loop().call_later(0.01, event.set)
    started = time.monotonic()

    with pytest.raises(CancellationError):
        await cancellable_sleep(10, event)

    assert time.monotonic() - started < 5
