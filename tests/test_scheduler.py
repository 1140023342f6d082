"""Unit tests for the debounced update scheduler."""

import asyncio
import logging
from unittest.mock import AsyncMock

import pytest

from counters.scheduler import DebounceScheduler, SchedulerState

COOLDOWN = 0.2


@pytest.mark.asyncio
async def test_first_request_runs_immediately():
    action = AsyncMock()
    scheduler = DebounceScheduler(action, 5)

    scheduler.request()

    # The action coroutine is created inside request(), in the same tick
    assert action.call_count == 1
    assert scheduler.state is SchedulerState.COOLING
    scheduler.close()


@pytest.mark.asyncio
async def test_burst_collapses_into_leading_and_trailing_run():
    action = AsyncMock()
    scheduler = DebounceScheduler(action, COOLDOWN)

    for _ in range(50):
        scheduler.request()

    assert action.call_count == 1
    assert scheduler.state is SchedulerState.COOLING_PENDING

    await asyncio.sleep(COOLDOWN * 1.5)
    assert action.call_count == 2
    # The trailing run opened a window of its own
    assert scheduler.state is SchedulerState.COOLING

    await asyncio.sleep(COOLDOWN * 1.5)
    assert action.call_count == 2
    assert scheduler.state is SchedulerState.IDLE
    await scheduler.drain()
    assert action.await_count == 2


@pytest.mark.asyncio
async def test_no_requests_means_no_runs():
    action = AsyncMock()
    scheduler = DebounceScheduler(action, 0.05)

    await asyncio.sleep(0.15)

    action.assert_not_called()
    assert scheduler.state is SchedulerState.IDLE


@pytest.mark.asyncio
async def test_single_request_has_no_trailing_run():
    action = AsyncMock()
    scheduler = DebounceScheduler(action, 0.05)

    scheduler.request()
    await asyncio.sleep(0.15)

    assert action.call_count == 1
    assert scheduler.state is SchedulerState.IDLE


@pytest.mark.asyncio
async def test_zero_cooldown_runs_every_request():
    action = AsyncMock()
    scheduler = DebounceScheduler(action, 0)

    for _ in range(100):
        scheduler.request()

    assert not scheduler.enabled
    assert action.call_count == 100
    assert scheduler.state is SchedulerState.IDLE
    await scheduler.drain()
    assert action.await_count == 100


@pytest.mark.asyncio
@pytest.mark.parametrize("cooldown", [-3, "soon", None, float("nan")])
async def test_invalid_cooldown_disables_debouncing(cooldown):
    action = AsyncMock()
    scheduler = DebounceScheduler(action, cooldown)

    scheduler.request()
    scheduler.request()

    assert scheduler.cooldown == 0
    assert action.call_count == 2
    await scheduler.drain()


@pytest.mark.asyncio
async def test_request_after_trailing_run_waits_a_full_new_window():
    action = AsyncMock()
    scheduler = DebounceScheduler(action, COOLDOWN)

    scheduler.request()
    scheduler.request()
    await asyncio.sleep(COOLDOWN * 1.25)  # trailing run at ~COOLDOWN
    assert action.call_count == 2

    scheduler.request()
    assert action.call_count == 2
    assert scheduler.state is SchedulerState.COOLING_PENDING

    # Still inside the window opened by the trailing run
    await asyncio.sleep(COOLDOWN * 0.5)
    assert action.call_count == 2

    await asyncio.sleep(COOLDOWN * 0.75)
    assert action.call_count == 3
    scheduler.close()
    await scheduler.drain()


@pytest.mark.asyncio
async def test_pending_implies_cooling():
    scheduler = DebounceScheduler(AsyncMock(), COOLDOWN)

    assert not scheduler.pending and not scheduler.cooling
    scheduler.request()
    scheduler.request()
    assert scheduler.pending and scheduler.cooling

    scheduler.close()
    assert not scheduler.pending and not scheduler.cooling


@pytest.mark.asyncio
async def test_close_drops_pending_trailing_run_and_ignores_new_requests():
    action = AsyncMock()
    scheduler = DebounceScheduler(action, 0.05)

    scheduler.request()
    scheduler.request()
    scheduler.close()
    scheduler.request()
    await asyncio.sleep(0.15)

    assert action.call_count == 1
    assert scheduler.closed
    assert scheduler.state is SchedulerState.IDLE


@pytest.mark.asyncio
async def test_action_errors_are_logged_not_raised(caplog):
    action = AsyncMock(side_effect=RuntimeError("boom"))
    scheduler = DebounceScheduler(action, 0)

    with caplog.at_level(logging.ERROR):
        scheduler.request()
        await scheduler.drain()

    assert "boom" in caplog.text
    assert scheduler.in_flight == 0


@pytest.mark.asyncio
async def test_trailing_run_may_overlap_a_slow_leading_run():
    release = asyncio.Event()
    started = []

    async def slow_update():
        started.append(len(started))
        await release.wait()

    scheduler = DebounceScheduler(slow_update, 0.05)
    scheduler.request()
    scheduler.request()
    await asyncio.sleep(0.1)

    assert started == [0, 1]
    assert scheduler.in_flight == 2

    release.set()
    await scheduler.drain()
    assert scheduler.in_flight == 0
    scheduler.close()


@pytest.mark.asyncio
async def test_counts_requests_and_executions():
    scheduler = DebounceScheduler(AsyncMock(), COOLDOWN)

    for _ in range(5):
        scheduler.request()

    assert scheduler.requests == 5
    assert scheduler.executions == 1
    scheduler.close()
    await scheduler.drain()
