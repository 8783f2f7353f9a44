# src/tasklog/sync/reconciler.py

from __future__ import annotations

"""
Remote sync reconciler.

Outbound:
- schedule(): debounced write, reset by every new change, skipped when the
  structural fingerprint matches what was last written
- flush(): immediate write (start/stop/delete/clear/logout), failures logged

Inbound (subscription callback):
- echoes of our own recent writes are ignored
- legacy single-day payloads are migrated into the per-day index
- a day is replaced locally only when its task-id set differs (diff-gate)
- active state is restored only when the incoming snapshot has today's task
  running; every other open session is closed
- goals are merged per day, local values winning

There are no locks: everything runs on one event loop and every local mutation
is a synchronous call.
"""

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable

from ..core.clock import day_key
from ..core.errors import PersistenceFailure
from ..core.models import Session, Snapshot
from ..core.ports import Clock, SnapshotPayload, SnapshotStore, Unsubscribe
from ..tracking.sessions import SessionTracker
from .snapshot import (
    Fingerprint,
    build_snapshot,
    migrate_legacy,
    payload_key,
    same_id_set,
    structural_fingerprint,
)

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]

RECENT_WRITES = 16


class SyncReconciler:
    def __init__(
        self,
        tracker: SessionTracker,
        store: SnapshotStore,
        *,
        user_id: str,
        clock: Clock,
        debounce_seconds: float = 1.0,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.tracker = tracker
        self.state = tracker.state
        self.store = store
        self.user_id = user_id
        self.clock = clock
        self.debounce_seconds = max(0.0, float(debounce_seconds))
        self._sleep = sleep

        self._pending: asyncio.Task[bool] | None = None
        self._last_written: Fingerprint | None = None
        self._recent_writes: deque[str] = deque(maxlen=RECENT_WRITES)
        self._unsubscribe: Unsubscribe | None = None

        self.last_remote: Snapshot | None = None
        self.remote_available = False
        self.write_failures = 0

    # ---- outbound ----

    def _today(self) -> str:
        return day_key(self.clock.now())

    def current_snapshot(self) -> Snapshot:
        return build_snapshot(self.state, self._today())

    @property
    def has_pending_write(self) -> bool:
        return self._pending is not None and not self._pending.done()

    def schedule(self) -> bool:
        """
        Note a local change and (re)arm the debounced write.

        Returns False when the change is not material and no write was scheduled.
        """
        fp = structural_fingerprint(self.current_snapshot())
        if fp == self._last_written and not self.has_pending_write:
            logger.debug("Outbound write suppressed (no structural change)")
            return False

        self._cancel_pending()
        self._pending = asyncio.get_running_loop().create_task(self._debounced(), name="sync:debounce")
        return True

    async def _debounced(self) -> bool:
        await self._sleep(self.debounce_seconds)
        # Detach first so flush() does not cancel the task it is running in.
        self._pending = None
        return await self._write("debounced")

    def _cancel_pending(self) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None

    async def flush(self, reason: str = "immediate") -> bool:
        """Write the latest snapshot now, bypassing the debounce. Never raises."""
        self._cancel_pending()
        return await self._write(reason)

    async def _write(self, reason: str) -> bool:
        snapshot = self.current_snapshot()
        fp = structural_fingerprint(snapshot)
        self._recent_writes.append(payload_key(snapshot))
        try:
            await self.store.put(self.user_id, snapshot.to_dict(), merge=True)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            # Local state stays authoritative; the next change retries with fresh data.
            self.write_failures += 1
            self._last_written = None
            err = e if isinstance(e, PersistenceFailure) else PersistenceFailure(str(e))
            logger.error("Snapshot write failed (%s) user=%s: %s", reason, self.user_id, err, exc_info=e)
            return False
        self._last_written = fp
        logger.debug("Snapshot written (%s) user=%s", reason, self.user_id)
        return True

    # ---- inbound ----

    def attach(self) -> None:
        """Start the standing subscription (idempotent)."""
        if self._unsubscribe is not None:
            return
        self._unsubscribe = self.store.subscribe(self.user_id, self.on_remote)
        logger.info("Subscribed to snapshots user=%s", self.user_id)

    def detach(self) -> None:
        """Stop listening and drop any pending debounced write."""
        self._cancel_pending()
        if self._unsubscribe is not None:
            try:
                self._unsubscribe()
            except Exception:
                logger.exception("Unsubscribe failed user=%s", self.user_id)
            self._unsubscribe = None
            logger.info("Unsubscribed from snapshots user=%s", self.user_id)

    @property
    def attached(self) -> bool:
        return self._unsubscribe is not None

    def on_remote(self, payload: SnapshotPayload | None) -> None:
        """Subscription callback. Never raises."""
        if not self.attached:
            logger.debug("Ignoring snapshot delivered after detach")
            return
        try:
            self._apply_remote(payload)
        except Exception:
            logger.exception("Applying remote snapshot failed; treating it as absent")
            self._absent()

    def _absent(self) -> None:
        # Only derived bookkeeping is dropped; local tasks/goals are untouched.
        self.last_remote = None
        self.remote_available = False
        self._last_written = None

    def _apply_remote(self, payload: SnapshotPayload | None) -> None:
        incoming = Snapshot.from_dict(payload) if payload is not None else None
        if incoming is None:
            logger.info("No remote snapshot for user=%s", self.user_id)
            self._absent()
            return

        self.remote_available = True
        if payload_key(incoming) in self._recent_writes:
            logger.debug("Ignoring echo of our own write")
            return

        if migrate_legacy(incoming):
            logger.info("Migrated legacy task list into day %s", incoming.tasks_day)
        self.last_remote = incoming

        # (b) diff-gate per day
        replaced: list[str] = []
        for day, remote_tasks in incoming.tasks_by_day.items():
            local_tasks = self.state.tasks_by_day.get(day)
            if local_tasks is not None and same_id_set(local_tasks, remote_tasks):
                continue
            self.state.tasks_by_day[day] = remote_tasks
            replaced.append(day)
        if replaced:
            logger.info("Remote replaced days: %s", ", ".join(sorted(replaced)))

        # (c) active task
        self._reconcile_active(incoming)

        # (d) goals: remote fills gaps, local wins
        merged = dict(incoming.goals_by_day)
        merged.update(self.state.goals_by_day)
        self.state.goals_by_day = merged

        # What we hold now is what the store has (plus local-only extras); no echo write needed.
        if not self.has_pending_write:
            self._last_written = structural_fingerprint(self.current_snapshot())

    def _reconcile_active(self, incoming: Snapshot) -> None:
        now = self.clock.now()
        today = day_key(now)
        local_active = self.state.active_task_id

        if incoming.tasks_day != today:
            if local_active is not None or self.state.open_session_owners():
                logger.info("Remote snapshot is from %s (today %s); clearing active task", incoming.tasks_day, today)
                self.tracker.stop_active(now, cap=True)
            return

        task_id, start = incoming.active_task_id, incoming.active_start
        if task_id and start:
            remote = next((t for t in incoming.tasks_by_day.get(today, []) if t.id == task_id), None)
            local = next((t for t in self.state.tasks_for(today) if t.id == task_id), None)
            if remote is not None and remote.has_open_session and local is not None:
                # Only the running task may keep an open session.
                for _, t in self.state.iter_tasks():
                    if t is not local:
                        t.close_open_sessions(start)
                if not local.has_open_session:
                    # Kept by the diff-gate: the run started elsewhere.
                    local.sessions.append(Session(start))
                if local_active != task_id:
                    logger.info("Restored running task %s from remote", task_id)
                self.state.active_task_id = task_id
                self.state.active_start = start
                return

        if local_active is not None or self.state.open_session_owners():
            logger.info("Remote has no running session; clearing active task")
            self.tracker.stop_active(now, cap=True)
