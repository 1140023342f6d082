"""
Leading + trailing edge debounce for counter updates.

The first request after being idle runs the action immediately and opens
a cooldown window. Requests inside the window only raise a pending flag;
when the window closes a single trailing run happens, which opens a new
window of its own.

    IDLE            --request-->  COOLING          (run, arm timer)
    COOLING         --request-->  COOLING_PENDING
    COOLING_PENDING --request-->  COOLING_PENDING
    COOLING         --expiry--->  IDLE
    COOLING_PENDING --expiry--->  COOLING          (run, arm timer)

A zero cooldown turns the gate off and every request runs.
"""

import asyncio
import enum
import logging
from typing import Any, Awaitable, Callable, Optional, Set

from counters.config import normalise_cooldown


class SchedulerState(enum.Enum):
    IDLE = "idle"
    COOLING = "cooling"
    COOLING_PENDING = "cooling-pending"


class DebounceScheduler:
    def __init__(
        self,
        action: Callable[[], Awaitable[Any]],
        cooldown_seconds: float,
        name: str = "counter_update",
    ):
        self._action = action
        self.cooldown: float = normalise_cooldown(cooldown_seconds)
        self.name = name

        self.cooling = False
        self.pending = False
        self._closed = False
        self._timer: Optional[asyncio.TimerHandle] = None

        # Strong references to spawned runs, otherwise the loop may drop them
        self._tasks: Set[asyncio.Task] = set()

        # Diagnostics only
        self.requests = 0
        self.executions = 0

    @property
    def enabled(self) -> bool:
        return self.cooldown > 0

    @property
    def state(self) -> SchedulerState:
        if not self.cooling:
            return SchedulerState.IDLE
        if self.pending:
            return SchedulerState.COOLING_PENDING
        return SchedulerState.COOLING

    @property
    def in_flight(self) -> int:
        return sum(1 for t in self._tasks if not t.done())

    @property
    def closed(self) -> bool:
        return self._closed

    def request(self):
        """Signal that something changed. Never blocks; must run on the event loop."""
        if self._closed:
            return
        self.requests += 1

        if not self.enabled:
            self._spawn()
            return

        if self.cooling:
            self.pending = True
            return

        self.cooling = True
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self.cooldown, self._on_cooldown_expired)
        self._spawn()

    def _on_cooldown_expired(self):
        self._timer = None
        self.cooling = False
        if self.pending:
            self.pending = False
            self.request()

    def _spawn(self):
        self.executions += 1
        task = asyncio.create_task(
            self._run(self._action()), name=f"{self.name}_{self.executions}"
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, coro: Awaitable[Any]):
        try:
            await coro
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logging.error(f"Scheduled {self.name} failed: {e}", exc_info=True)

    def close(self):
        """Stop the timer and forget any pending trailing run. Later requests are ignored."""
        self._closed = True
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self.cooling = False
        self.pending = False

    async def drain(self):
        """Wait for every run that has already started."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
