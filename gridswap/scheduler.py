"""
Fixed-period, single-flight tick scheduler.

If a tick is still running when the next period elapses, that period is
skipped rather than queued: two overlapping ticks would both see the same
previous price and could buy the same level twice.
"""

import asyncio
import logging
from typing import Callable, Optional

from .engine import GridEngine, TickContext, TickResult, format_result

logger = logging.getLogger(__name__)


class Scheduler:
    """
    Runs ``engine.tick`` every ``interval`` seconds.

    Example:
        scheduler = Scheduler(engine, TickContext(levels=levels), interval=300)
        await scheduler.run()          # until stop()
        await scheduler.run(max_ticks=1)
    """

    def __init__(
        self,
        engine: GridEngine,
        context: TickContext,
        interval: float,
        on_result: Optional[Callable[[TickResult], None]] = None,
    ):
        self.engine = engine
        self.context = context
        self.interval = interval
        self.on_result = on_result
        self.ticks = 0
        self.skipped = 0
        self._task: Optional[asyncio.Task] = None
        self._stopped: Optional[asyncio.Event] = None
        self._stop_requested = False

    @property
    def busy(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _run_tick(self):
        result = await self.engine.tick(self.context)
        self.context = result.context
        self.ticks += 1
        logger.info(format_result(result))
        if self.on_result:
            self.on_result(result)

    def _reap(self):
        """Surface the error of a finished tick before its task is replaced"""
        task = self._task
        if task is not None and task.done() and not task.cancelled() and task.exception():
            logger.error("Tick failed", exc_info=task.exception())

    def fire(self) -> bool:
        """
        Start a tick unless one is in flight.

        Returns:
            True if a tick was started, False if this period was skipped
        """
        if self.busy:
            self.skipped += 1
            logger.warning("Previous tick still running, skipping this period")
            return False
        self._reap()
        self._task = asyncio.create_task(self._run_tick())
        return True

    async def run(self, max_ticks: Optional[int] = None):
        """
        Fire ticks on a fixed period until :meth:`stop` or ``max_ticks``.

        The tick in flight when the loop ends is awaited, never cancelled, so a
        state write is never cut short.
        """
        loop = asyncio.get_running_loop()
        self._stopped = asyncio.Event()
        if self._stop_requested:
            self._stopped.set()

        started = 0
        next_at = loop.time()
        try:
            while not self._stopped.is_set():
                if self.fire():
                    started += 1
                if max_ticks is not None and started >= max_ticks:
                    break

                next_at += self.interval
                delay = max(0.0, next_at - loop.time())
                try:
                    await asyncio.wait_for(self._stopped.wait(), timeout=delay)
                except asyncio.TimeoutError:
                    pass
        finally:
            await self.drain()

    async def drain(self):
        """Wait for the tick in flight, if any."""
        task = self._task
        if task is None:
            return
        self._task = None
        try:
            await task
        except Exception:
            logger.exception("Tick failed")

    def stop(self):
        self._stop_requested = True
        if self._stopped is not None:
            self._stopped.set()
