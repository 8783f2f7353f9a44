# src/tasklog/tracking/ticker.py

from __future__ import annotations

"""
Owned repeating timers.

A Ticker runs `callback` every interval on the running event loop until it is
cancelled. Callback failures are logged and the loop keeps going.
"""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

TickCallback = Callable[[], Awaitable[None] | None]
Sleep = Callable[[float], Awaitable[None]]


class Ticker:
    def __init__(
        self,
        name: str,
        interval_seconds: float,
        callback: TickCallback,
        *,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.name = name
        self.interval_seconds = max(0.001, float(interval_seconds))
        self._callback = callback
        self._sleep = sleep
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start ticking on the current event loop (idempotent)."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name=f"ticker:{self.name}")
        logger.debug("Ticker %s started (every %.3fs)", self.name, self.interval_seconds)

    def cancel(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None
            logger.debug("Ticker %s cancelled", self.name)

    async def tick(self) -> None:
        """Run the callback once."""
        try:
            result = self._callback()
            if inspect.isawaitable(result):
                await result
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Ticker %s callback failed", self.name)

    async def _run(self) -> None:
        while True:
            await self._sleep(self.interval_seconds)
            await self.tick()
