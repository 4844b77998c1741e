"""Asyncio scheduler running each background loop at its own cadence"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict

logger = logging.getLogger(__name__)


class PeriodicScheduler:
    """
    Runs coroutine functions forever at fixed intervals.

    A failing run is logged and the loop sleeps until the next tick; only
    cancel_all() (process shutdown) stops a loop.
    """

    def __init__(self):
        self._tasks: Dict[str, asyncio.Task] = {}

    @property
    def task_names(self) -> list[str]:
        return list(self._tasks)

    def schedule_periodic(
        self,
        name: str,
        interval_seconds: float,
        coro_func: Callable[[], Awaitable[object]],
    ) -> asyncio.Task:
        if name in self._tasks:
            raise ValueError(f"Task {name!r} is already scheduled")

        async def periodic_wrapper():
            while True:
                try:
                    await coro_func()
                except asyncio.CancelledError:
                    raise
                except Exception:
                    logger.exception("Periodic task failed", extra={"task": name})
                await asyncio.sleep(interval_seconds)

        task = asyncio.create_task(periodic_wrapper(), name=name)
        self._tasks[name] = task
        logger.info("Periodic task scheduled", extra={"task": name, "interval_seconds": interval_seconds})
        return task

    async def cancel_all(self) -> None:
        for task in self._tasks.values():
            task.cancel()
        await asyncio.gather(*self._tasks.values(), return_exceptions=True)
        self._tasks.clear()
        logger.info("All periodic tasks cancelled")
