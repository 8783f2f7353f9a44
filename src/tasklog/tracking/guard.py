# src/tasklog/tracking/guard.py

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from .sessions import SessionTracker

logger = logging.getLogger(__name__)

OnAutoStop = Callable[[str], Awaitable[None]]


class AutoStopGuard:
    """
    Fast-tick check that no session stays open past the tracker's limit.

    When the Running task is force-stopped, `on_auto_stop` is awaited so the
    caller can persist immediately instead of waiting for the debounce.
    """

    def __init__(self, tracker: SessionTracker, on_auto_stop: OnAutoStop | None = None) -> None:
        self.tracker = tracker
        self._on_auto_stop = on_auto_stop

    async def tick(self) -> str | None:
        stopped = self.tracker.check_auto_stop()
        if stopped is None:
            return None
        if self._on_auto_stop is not None:
            try:
                await self._on_auto_stop(stopped)
            except Exception:
                logger.exception("Persisting auto-stop of task %s failed", stopped)
        return stopped
