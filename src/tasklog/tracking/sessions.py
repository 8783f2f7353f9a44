# src/tasklog/tracking/sessions.py

"""
Session state machine.

Each task is Idle or Running; at most one task in the whole index is Running
and its id is tracked in TrackerState.active_task_id. Every public method is
a single synchronous update, so callers never observe a half-switched state.
"""

from __future__ import annotations

import logging

from ..core.clock import day_bounds, day_key, parse_hhmm
from ..core.errors import TaskNotFound, ValidationError
from ..core.models import TASK_COLORS, Session, Task
from ..core.ports import Clock
from .state import TrackerState

logger = logging.getLogger(__name__)

# 9h59m59s
MAX_SESSION_SECONDS = 9 * 3600 + 59 * 60 + 59


class SessionTracker:
    def __init__(
        self,
        state: TrackerState,
        clock: Clock,
        *,
        max_session_seconds: float = MAX_SESSION_SECONDS,
    ) -> None:
        self.state = state
        self.clock = clock
        self.max_session_seconds = float(max_session_seconds)

    # ---- helpers ----

    def _now(self, now: float | None) -> float:
        return self.clock.now() if now is None else float(now)

    def _require(self, task_id: str) -> tuple[str, Task]:
        found = self.state.find_task(task_id)
        if found is None:
            raise TaskNotFound(task_id)
        return found

    def is_running(self, task_id: str) -> bool:
        return self.state.active_task_id == task_id

    def elapsed(self, now: float | None = None) -> float:
        if self.state.active_task_id is None or self.state.active_start is None:
            return 0.0
        return max(0.0, self._now(now) - self.state.active_start)

    # ---- task lifecycle ----

    def add_task(self, name: str, *, color: str | None = None, day: str | None = None) -> Task:
        """
        Create a manual task at the top of the day's list.

        The new task gets order=0; every existing task of that day moves down by one.
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("Task name is required")

        now = self.clock.now()
        day = day or self.state.selected_day or day_key(now)

        # Millisecond creation instant, bumped on collision.
        ms = int(now * 1000)
        while self.state.find_task(str(ms)) is not None:
            ms += 1

        tasks = self.state.tasks_by_day.setdefault(day, [])
        for t in tasks:
            t.order += 1
        task = Task(id=str(ms), name=name, color=color or TASK_COLORS[0], order=0)
        tasks.insert(0, task)
        logger.info("Task added id=%s day=%s name=%r", task.id, day, name)
        return task

    def delete_task(self, task_id: str) -> Task:
        day, task = self._require(task_id)
        self.state.tasks_by_day[day] = [t for t in self.state.tasks_by_day[day] if t.id != task_id]
        if self.state.active_task_id == task_id:
            self.state.clear_active()
        logger.info("Task deleted id=%s day=%s", task_id, day)
        return task

    def clear_day(self, day: str) -> int:
        """Remove every task of the day. Returns how many were removed."""
        tasks = self.state.tasks_by_day.get(day, [])
        removed = len(tasks)
        if any(t.id == self.state.active_task_id for t in tasks):
            self.state.clear_active()
        self.state.tasks_by_day[day] = []
        logger.info("Day cleared day=%s removed=%d", day, removed)
        return removed

    # ---- start / stop ----

    def start(self, task_id: str, now: float | None = None) -> bool:
        """
        Make task_id the single Running task.

        Returns False when the task is already Running (no-op).
        """
        now = self._now(now)
        _, target = self._require(task_id)

        if self.state.active_task_id == task_id and target.has_open_session:
            return False

        previous = self.state.active_task_id

        # Close every other open session: the previously active task and any strays.
        for _, t in self.state.iter_tasks():
            if t.id != task_id and t.has_open_session:
                n = t.close_open_sessions(now)
                if t.id != previous:
                    logger.warning("Closed %d stray open session(s) on task %s", n, t.id)

        if target.has_open_session:
            n = target.close_open_sessions(now)
            logger.warning("Closed %d stray open session(s) on task %s before restart", n, task_id)

        target.sessions.append(Session(start=now))
        self.state.active_task_id = task_id
        self.state.active_start = now
        logger.info("Task started id=%s previous=%s", task_id, previous)
        return True

    def stop(self, task_id: str, now: float | None = None) -> int:
        """Close all open sessions of task_id and clear the active marker. Returns sessions closed."""
        now = self._now(now)
        _, task = self._require(task_id)
        closed = task.close_open_sessions(now)
        if self.state.active_task_id == task_id:
            self.state.clear_active()
        logger.info("Task stopped id=%s closed=%d", task_id, closed)
        return closed

    def toggle(self, task_id: str, now: float | None = None) -> bool:
        """Stop if task_id is the active task, else start it. Returns True if now Running."""
        if self.state.active_task_id == task_id:
            self.stop(task_id, now)
            return False
        self.start(task_id, now)
        return True

    def stop_active(self, now: float | None = None, *, cap: bool = False) -> str | None:
        """
        Clear active state, closing whatever is still open.

        With cap=True open sessions end no later than start + max_session_seconds
        (used when the running session is known to be stale).
        """
        now = self._now(now)
        active = self.state.active_task_id
        for _, t in self.state.iter_tasks():
            for s in t.open_sessions():
                end = min(now, s.start + self.max_session_seconds) if cap else now
                s.end = max(end, s.start)
                t.recompute_total()
        self.state.clear_active()
        return active

    def check_auto_stop(self, now: float | None = None) -> str | None:
        """
        Force-stop the Running task once it has run for max_session_seconds.

        Returns the stopped task id, or None if nothing was stopped.
        """
        task_id = self.state.active_task_id
        if task_id is None or self.state.active_start is None:
            return None
        now = self._now(now)
        if now - self.state.active_start < self.max_session_seconds:
            return None

        logger.warning(
            "Auto-stopping task %s after %.0fs (limit %.0fs)",
            task_id,
            now - self.state.active_start,
            self.max_session_seconds,
        )
        if self.state.find_task(task_id) is None:
            # Active id points at a task that no longer exists.
            self.stop_active(now)
        else:
            self.stop(task_id, now)
        return task_id

    # ---- manual session edits ----

    def _closed_session(self, task: Task, index: int) -> Session:
        if index < 0 or index >= len(task.sessions):
            raise ValidationError(f"Task {task.id} has no session #{index}")
        session = task.sessions[index]
        if session.is_open:
            raise ValidationError("Running sessions cannot be edited; stop the task first")
        return session

    def edit_session(self, task_id: str, index: int, start: float, end: float) -> Session:
        _, task = self._require(task_id)
        session = self._closed_session(task, index)
        if start >= end:
            raise ValidationError("Session end must be after its start")
        session.start = float(start)
        session.end = float(end)
        task.recompute_total()
        logger.info("Session edited task=%s index=%d", task_id, index)
        return session

    def edit_session_times(self, task_id: str, index: int, start_hhmm: str, end_hhmm: str, day: str) -> Session:
        """Edit a closed session from 'HH:MM' strings interpreted on `day`."""
        start = parse_hhmm(day, start_hhmm)
        end = parse_hhmm(day, end_hhmm)
        return self.edit_session(task_id, index, start, end)

    def delete_session(self, task_id: str, index: int) -> Session:
        _, task = self._require(task_id)
        session = self._closed_session(task, index)
        del task.sessions[index]
        task.recompute_total()
        logger.info("Session deleted task=%s index=%d", task_id, index)
        return session

    def reset_day(self, day: str, now: float | None = None) -> int:
        """
        Drop the day's recorded time.

        Removes closed sessions that end on/after the day start and, when the day
        is today, the running session; stops the running task. Returns sessions removed.
        """
        now = self._now(now)
        day_start, _ = day_bounds(day)
        is_today = day == day_key(now)
        removed = 0

        for task in self.state.tasks_for(day):
            keep: list[Session] = []
            for s in task.sessions:
                if s.end is not None:
                    drop = s.end >= day_start
                else:
                    drop = is_today and s.start >= day_start and self.state.active_task_id == task.id
                if drop:
                    removed += 1
                else:
                    keep.append(s)
            task.sessions = keep
            task.recompute_total()

        if self.state.active_task_id is not None:
            self.stop_active(now)
        logger.info("Day reset day=%s sessions_removed=%d", day, removed)
        return removed
