"""Cancellable periodic tasks on the running event loop."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)


class PeriodicTask:
    """Runs *callback* every *interval* seconds between ``start()`` and ``stop()``.

    Each fire runs as its own task, so a slow fire does not delay the next one
    and overlapping fires both run. ``stop()`` cancels the timer and every fire
    still in flight. A failing fire is logged; the timer keeps going.
    """

    def __init__(
        self,
        name: str,
        interval: float,
        callback: Callable[[], Awaitable[None]],
        *,
        run_immediately: bool = True,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.name = name
        self.interval = interval
        self._callback = callback
        self._run_immediately = run_immediately
        self._timer: asyncio.Task | None = None
        self._fires: set[asyncio.Task] = set()
        self.fire_count = 0

    @property
    def running(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def start(self) -> None:
        if self.running:
            return
        self._timer = asyncio.get_running_loop().create_task(
            self._loop(), name=f"periodic:{self.name}"
        )
        logger.debug("Started periodic task %s every %ss", self.name, self.interval)

    async def stop(self) -> None:
        timer, self._timer = self._timer, None
        pending = [task for task in (timer, *self._fires) if task is not None]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._fires.clear()
        logger.debug("Stopped periodic task %s", self.name)

    async def _loop(self) -> None:
        if not self._run_immediately:
            await asyncio.sleep(self.interval)
        while True:
            self._fire()
            await asyncio.sleep(self.interval)

    def _fire(self) -> None:
        self.fire_count += 1
        task = asyncio.get_running_loop().create_task(self._run_once())
        self._fires.add(task)
        task.add_done_callback(self._fires.discard)

    async def _run_once(self) -> None:
        try:
            await self._callback()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Periodic task %s failed", self.name)
