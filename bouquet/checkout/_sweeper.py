"""
Sweeper — periodic maintenance for one engine.

Two independent loops:

    every sweep_interval          engine.sweep(now)        expired sessions out
    every replay_clear_interval   engine.clear_replays()   replay cache emptied

Started and stopped with the application lifespan.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta

import structlog
from kungfu import Result, Ok, Error

from bouquet.checkout._engine import CheckoutEngine
from bouquet.checkout._types import CheckoutError


logger = structlog.get_logger()


class Sweeper:
    def __init__(
        self,
        engine: CheckoutEngine,
        *,
        sweep_interval: timedelta | None = None,
        clear_interval: timedelta | None = None,
    ) -> None:
        self.engine = engine
        self.sweep_interval = sweep_interval or engine.settings.sweep_interval
        self.clear_interval = clear_interval or engine.settings.replay_clear_interval
        self._tasks: list[asyncio.Task[None]] = []

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    def start(self) -> None:
        if self.running:
            return
        self._tasks = [
            asyncio.create_task(self._every(self.sweep_interval, "sweep", self.engine.sweep)),
            asyncio.create_task(self._every(self.clear_interval, "clear_replays", self.engine.clear_replays)),
        ]
        logger.info(
            "sweeper_started",
            sweep_interval=self.sweep_interval.total_seconds(),
            clear_interval=self.clear_interval.total_seconds(),
        )

    async def stop(self) -> None:
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        if tasks:
            logger.info("sweeper_stopped")

    async def run_once(self, now: datetime | None = None) -> tuple[int, int]:
        """One pass of each loop: (sessions swept, replays cleared)."""
        swept = _count("sweep", await self.engine.sweep(now))
        cleared = _count("clear_replays", await self.engine.clear_replays())
        return swept, cleared

    async def _every(
        self,
        interval: timedelta,
        job: str,
        action: Callable[[], Awaitable[Result[int, CheckoutError]]],
    ) -> None:
        while True:
            await asyncio.sleep(interval.total_seconds())
            _count(job, await action())


def _count(job: str, result: Result[int, CheckoutError]) -> int:
    """A failed pass is logged and retried on the next tick."""
    match result:
        case Ok(count):
            return count
        case Error(err):
            logger.warning("maintenance_failed", job=job, kind=err.kind.name, error=err.message)
            return 0


__all__ = ("Sweeper",)
