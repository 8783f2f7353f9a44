# src/tasklog/tracking/state.py

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field

from ..core.models import Goals, Task


@dataclass
class TrackerState:
    """
    Local, authoritative per-user state.

    tasks_by_day: day key -> that day's tasks (display order is Task.order)
    goals_by_day: day key -> Goals
    active_task_id / active_start: the single Running task, if any
    selected_day: the day currently shown (drives add/import defaults)
    now_marker: display-only "now", refreshed by the slow ticker
    """

    tasks_by_day: dict[str, list[Task]] = field(default_factory=dict)
    goals_by_day: dict[str, Goals] = field(default_factory=dict)
    active_task_id: str | None = None
    active_start: float | None = None
    selected_day: str = ""
    now_marker: float | None = None

    def tasks_for(self, day: str) -> list[Task]:
        return self.tasks_by_day.get(day, [])

    def iter_tasks(self) -> Iterator[tuple[str, Task]]:
        for day, tasks in self.tasks_by_day.items():
            for t in tasks:
                yield day, t

    def find_task(self, task_id: str) -> tuple[str, Task] | None:
        for day, t in self.iter_tasks():
            if t.id == task_id:
                return day, t
        return None

    def open_session_owners(self) -> list[str]:
        return [t.id for _, t in self.iter_tasks() if t.has_open_session]

    def clear_active(self) -> None:
        self.active_task_id = None
        self.active_start = None

    def reset(self) -> None:
        """Drop everything (logout)."""
        self.tasks_by_day = {}
        self.goals_by_day = {}
        self.clear_active()
        self.now_marker = None
