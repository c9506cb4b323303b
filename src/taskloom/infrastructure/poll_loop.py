"""Single-task async polling loop used by the scheduler and IPC fallback."""

from __future__ import annotations

import asyncio
from typing import Callable, Awaitable

from taskloom.infrastructure.logger import logger


class PollLoop:
    """Runs ``fn`` once per ``interval_s`` on one asyncio task.

    Ticks never overlap: the next sleep starts only after the current tick
    returns. An exception from a tick is logged and the loop carries on with
    the next tick.
    """

    def __init__(self, name: str, interval_s: float, fn: Callable[[], Awaitable[None]]) -> None:
        self._name = name
        self._interval = interval_s
        self._fn = fn
        self._task: asyncio.Task[None] | None = None
        self._stopped = False
        self.ticks = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the polling loop as a background task."""
        if self.running:
            return
        self._stopped = False
        self._task = asyncio.create_task(self._loop(), name=f"{self._name}-loop")
        logger.info(f"{self._name} loop started", interval_s=self._interval)

    def stop(self) -> None:
        """Stop the polling loop. A tick in flight is cancelled."""
        self._stopped = True
        if self._task:
            self._task.cancel()
            self._task = None

    async def tick(self) -> bool:
        """Run one iteration. Returns False if it raised."""
        self.ticks += 1
        try:
            await self._fn()
            return True
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception(f"Error in {self._name} loop", tick=self.ticks)
            return False

    async def _loop(self) -> None:
        while not self._stopped:
            try:
                await self.tick()
                if not self._stopped:
                    await asyncio.sleep(self._interval)
            except asyncio.CancelledError:
                break


def start_poll_loop(name: str, interval_s: float, fn: Callable[[], Awaitable[None]]) -> PollLoop:
    """Create and start a polling loop. Returns a handle to stop it."""
    loop = PollLoop(name, interval_s, fn)
    loop.start()
    return loop
