"""Owned asyncio task that runs a coroutine on a fixed interval."""

import asyncio

from enum import StrEnum

from typing import TYPE_CHECKING

from src.helpers.logging import get_logger
from src.helpers.retry import log_and_suppress_errors


if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable


logger = get_logger(__name__)


class MonitorState(StrEnum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


class PeriodicTask:
    """Run ``tick`` every ``interval`` seconds until stopped.

    A failing tick is logged and skipped; the loop keeps going. ``stop()``
    is safe to call any number of times, before or after ``start()``.

    Example:
        ```python
        task = PeriodicTask("reorg monitor sepolia", monitor.check, interval=5.0)
        task.start()
        ...
        await task.stop()
        ```
    """

    def __init__(
        self,
        name: str,
        tick: Callable[[], Awaitable[object]],
        interval: float,
    ) -> None:
        if interval <= 0:
            msg = f"interval must be positive, got {interval}"
            raise ValueError(msg)
        self.name = name
        self.interval = interval
        self.state = MonitorState.IDLE
        self._tick = tick
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self.state is MonitorState.RUNNING

    def start(self) -> bool:
        """Schedule the loop. Returns False if it is already running."""
        if self.running:
            logger.warning("%s already running", self.name)
            return False
        self.state = MonitorState.RUNNING
        self._task = asyncio.create_task(self._run(), name=self.name)
        return True

    async def _run(self) -> None:
        while self.state is MonitorState.RUNNING:
            await asyncio.sleep(self.interval)
            async with log_and_suppress_errors(f"{self.name} tick"):
                await self._tick()

    async def stop(self) -> None:
        if self.state is not MonitorState.RUNNING:
            self.state = MonitorState.STOPPED
            return

        self.state = MonitorState.STOPPED
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            logger.debug("%s cancelled", self.name)


__all__ = [
    "MonitorState",
    "PeriodicTask",
]
