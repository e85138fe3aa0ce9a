from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, Optional

from croniter import croniter
from sanic.log import logger

from prbuilder.metric import error_counter


class PollScheduler:
    """One cron-driven poll task per subscriber."""

    def __init__(
        self,
        *,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.clock = clock
        self._tasks: Dict[str, asyncio.Task] = {}
        self._lock = asyncio.Lock()

    def next_delay(self, cron: str, now: Optional[datetime] = None) -> float:
        now = now or self.clock()
        upcoming = croniter(cron, now).get_next(datetime)
        return max(0.0, (upcoming - now).total_seconds())

    async def start(
        self, key: str, cron: str, poll: Callable[[], Awaitable[None]]
    ) -> None:
        async with self._lock:
            previous = self._tasks.pop(key, None)
            if previous is not None:
                previous.cancel()
            logger.info("Scheduling polls of %s at '%s'", key, cron)
            self._tasks[key] = asyncio.create_task(self._run(key, cron, poll))
        if previous is not None:
            await asyncio.gather(previous, return_exceptions=True)

    async def stop(self, key: str) -> bool:
        async with self._lock:
            task = self._tasks.pop(key, None)
        if task is None:
            return False
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        return True

    async def shutdown(self) -> None:
        async with self._lock:
            tasks = list(self._tasks.values())
            self._tasks.clear()

        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def __contains__(self, key: str) -> bool:
        return key in self._tasks

    async def _run(
        self, key: str, cron: str, poll: Callable[[], Awaitable[None]]
    ) -> None:
        while True:
            delay = self.next_delay(cron)
            logger.debug("Next poll of %s in %.1fs", key, delay)
            await asyncio.sleep(delay)
            try:
                await poll()
            except asyncio.CancelledError:
                raise
            except Exception:  # noqa: BLE001
                error_counter.labels(context="poll").inc()
                logger.error("Poll of %s failed", key, exc_info=True)
