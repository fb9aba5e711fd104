"""
Scheduler — periodic background tasks on the app's event loop.

Each task sleeps, runs its coroutine and logs any exception before continuing,
so a failing tick never kills the loop. Independent of the HTTP layer: the
lifespan starts and stops it, cron routes call ``force``.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class PeriodicTask:
    def __init__(self, name: str, interval: float, func: Callable[[], Awaitable], run_immediately: bool = False):
        self.name = name
        self.interval = interval
        self.func = func
        self.run_immediately = run_immediately
        self.runs = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _run_once(self):
        try:
            result = await self.func()
            self.runs += 1
            return result
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception(f"Scheduled task '{self.name}' failed: {e}")
            return None

    async def _loop(self):
        if self.run_immediately:
            await self._run_once()
        while True:
            await asyncio.sleep(self.interval)
            await self._run_once()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name=f"periodic:{self.name}")
        logger.info(f"Started periodic task '{self.name}' every {self.interval}s")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info(f"Stopped periodic task '{self.name}'")

    async def force(self):
        """Run the task now, outside its schedule."""
        return await self._run_once()


class Scheduler:
    def __init__(self):
        self.tasks: dict[str, PeriodicTask] = {}

    def add(self, name: str, interval: float, func: Callable[[], Awaitable], run_immediately: bool = False) -> PeriodicTask:
        task = PeriodicTask(name, interval, func, run_immediately=run_immediately)
        self.tasks[name] = task
        return task

    def start(self) -> None:
        for task in self.tasks.values():
            task.start()

    async def stop(self) -> None:
        for task in self.tasks.values():
            await task.stop()

    async def force(self, name: str):
        task = self.tasks.get(name)
        if task is None:
            raise KeyError(f"Unknown scheduled task: {name}")
        return await task.force()

    def status(self) -> dict:
        return {
            name: {"running": t.running, "interval": t.interval, "runs": t.runs}
            for name, t in self.tasks.items()
        }
