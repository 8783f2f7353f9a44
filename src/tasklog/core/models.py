# src/tasklog/core/models.py

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

logger = logging.getLogger(__name__)

TASK_COLORS: tuple[str, ...] = (
    "#667eea",
    "#764ba2",
    "#f093fb",
    "#4facfe",
    "#00f2fe",
    "#43e97b",
    "#fa709a",
    "#fee140",
    "#30cfd0",
    "#a8edea",
)

GOALS_PER_QUADRANT = 3

CALENDAR_ID_PREFIX = "calendar-"


def _num(raw: Any) -> float | None:
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        return None
    return float(raw)


class Quadrant(StrEnum):
    """Goal quadrant (urgent+important / important-not-urgent)."""

    Q1 = "quadrant1"
    Q2 = "quadrant2"

    @property
    def prefix(self) -> str:
        return "q1" if self is Quadrant.Q1 else "q2"

    @classmethod
    def parse(cls, raw: str | None) -> Quadrant | None:
        if not raw:
            return None
        s = raw.strip().lower()
        aliases = {"1": cls.Q1, "q1": cls.Q1, "2": cls.Q2, "q2": cls.Q2}
        if s in aliases:
            return aliases[s]
        try:
            return cls(s)
        except ValueError:
            return None


@dataclass(slots=True)
class Session:
    start: float
    end: float | None = None

    @property
    def is_open(self) -> bool:
        return self.end is None

    def duration(self, now: float | None = None) -> float:
        end = self.end if self.end is not None else now
        if end is None:
            return 0.0
        return max(0.0, end - self.start)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"start": self.start}
        if self.end is not None:
            out["end"] = self.end
        return out

    @classmethod
    def from_dict(cls, raw: Any) -> Session | None:
        if not isinstance(raw, dict):
            return None
        start = _num(raw.get("start"))
        if start is None or start <= 0:
            return None
        end = _num(raw.get("end"))
        return cls(start=start, end=end)


@dataclass(slots=True)
class Task:
    id: str
    name: str
    color: str
    order: int
    total_time: float = 0.0
    sessions: list[Session] = field(default_factory=list)

    # Calendar-origin tasks only.
    estimated_time: float | None = None
    scheduled_start: float | None = None
    scheduled_end: float | None = None

    @property
    def is_calendar(self) -> bool:
        return self.id.startswith(CALENDAR_ID_PREFIX)

    @property
    def has_open_session(self) -> bool:
        return any(s.is_open for s in self.sessions)

    def open_sessions(self) -> list[Session]:
        return [s for s in self.sessions if s.is_open]

    def close_open_sessions(self, end: float) -> int:
        """Close every open session at `end`. Returns how many were closed."""
        closed = 0
        for s in self.sessions:
            if s.end is None:
                s.end = max(end, s.start)
                closed += 1
        if closed:
            self.recompute_total()
        return closed

    def recompute_total(self) -> float:
        self.total_time = sum(s.duration() for s in self.sessions if not s.is_open)
        return self.total_time

    def actual_time(self, now: float) -> float:
        return sum(s.duration(now) for s in self.sessions)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "color": self.color,
            "order": self.order,
            "totalTime": self.total_time,
            "sessions": [s.to_dict() for s in self.sessions],
        }
        if self.estimated_time is not None:
            out["estimatedTime"] = self.estimated_time
        if self.scheduled_start is not None:
            out["scheduledStart"] = self.scheduled_start
        if self.scheduled_end is not None:
            out["scheduledEnd"] = self.scheduled_end
        return out

    @classmethod
    def from_dict(cls, raw: Any, *, index: int = 0) -> Task | None:
        """
        Build a Task from its wire mapping.

        Fails closed: returns None when the id is missing. Missing color/order
        are backfilled from the position (palette round-robin, order=index);
        malformed sessions are dropped.
        """
        if not isinstance(raw, dict):
            return None
        task_id = raw.get("id")
        if isinstance(task_id, (int, float)) and not isinstance(task_id, bool):
            task_id = str(int(task_id))
        if not isinstance(task_id, str) or not task_id.strip():
            return None

        name = raw.get("name")
        color = raw.get("color")
        order = _num(raw.get("order"))

        sessions: list[Session] = []
        for item in raw.get("sessions") or []:
            s = Session.from_dict(item)
            if s is None:
                logger.debug("Dropping malformed session on task %s: %r", task_id, item)
                continue
            sessions.append(s)

        total = _num(raw.get("totalTime"))
        return cls(
            id=task_id,
            name=name if isinstance(name, str) else "",
            color=color if isinstance(color, str) and color else TASK_COLORS[index % len(TASK_COLORS)],
            order=int(order) if order is not None else index,
            total_time=total if total is not None else 0.0,
            sessions=sessions,
            estimated_time=_num(raw.get("estimatedTime")),
            scheduled_start=_num(raw.get("scheduledStart")),
            scheduled_end=_num(raw.get("scheduledEnd")),
        )


@dataclass(slots=True)
class Goal:
    id: str
    text: str = ""
    achievement_rate: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "text": self.text, "achievementRate": self.achievement_rate}


def clamp_rate(raw: float) -> int:
    return int(max(0, min(100, raw)))


@dataclass(slots=True)
class Goals:
    quadrant1: list[Goal]
    quadrant2: list[Goal]

    @classmethod
    def default(cls) -> Goals:
        return cls(
            quadrant1=[Goal(id=f"q1-{i}") for i in range(GOALS_PER_QUADRANT)],
            quadrant2=[Goal(id=f"q2-{i}") for i in range(GOALS_PER_QUADRANT)],
        )

    def quadrant(self, q: Quadrant) -> list[Goal]:
        return self.quadrant1 if q is Quadrant.Q1 else self.quadrant2

    def copy(self) -> Goals:
        return Goals(
            quadrant1=[Goal(g.id, g.text, g.achievement_rate) for g in self.quadrant1],
            quadrant2=[Goal(g.id, g.text, g.achievement_rate) for g in self.quadrant2],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            Quadrant.Q1.value: [g.to_dict() for g in self.quadrant1],
            Quadrant.Q2.value: [g.to_dict() for g in self.quadrant2],
        }

    @classmethod
    def from_dict(cls, raw: Any) -> Goals | None:
        if not isinstance(raw, dict):
            return None
        out = cls.default()
        for q in Quadrant:
            items = raw.get(q.value)
            if not isinstance(items, list):
                continue
            slots = out.quadrant(q)
            for i, item in enumerate(items[:GOALS_PER_QUADRANT]):
                if not isinstance(item, dict):
                    continue
                text = item.get("text")
                rate = _num(item.get("achievementRate"))
                slots[i] = Goal(
                    id=f"{q.prefix}-{i}",
                    text=text if isinstance(text, str) else "",
                    achievement_rate=clamp_rate(rate) if rate is not None else 0,
                )
        return out


def _tasks_from_list(raw: Any) -> list[Task]:
    out: list[Task] = []
    if not isinstance(raw, list):
        return out
    for i, item in enumerate(raw):
        t = Task.from_dict(item, index=i)
        if t is None:
            logger.warning("Skipping malformed task payload: %r", item)
            continue
        out.append(t)
    return out


@dataclass(slots=True)
class Snapshot:
    """The projection exchanged with the durable store."""

    tasks_by_day: dict[str, list[Task]] = field(default_factory=dict)
    goals_by_day: dict[str, Goals] = field(default_factory=dict)
    tasks_day: str | None = None
    active_task_id: str | None = None
    active_start: float | None = None

    # Pre day-partitioning payloads stored one day's list under "tasks".
    legacy_tasks: list[Task] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "tasks": [t.to_dict() for t in self.legacy_tasks],
            "tasksByDate": {
                day: [t.to_dict() for t in tasks] for day, tasks in self.tasks_by_day.items()
            },
            "goalsByDate": {day: g.to_dict() for day, g in self.goals_by_day.items()},
            "tasksDate": self.tasks_day,
            "activeTaskId": self.active_task_id,
            "activeTaskStartTime": self.active_start,
        }

    @classmethod
    def from_dict(cls, raw: Any) -> Snapshot | None:
        if not isinstance(raw, dict):
            return None

        tasks_by_day: dict[str, list[Task]] = {}
        by_day = raw.get("tasksByDate")
        if isinstance(by_day, dict):
            for day, items in by_day.items():
                if isinstance(day, str):
                    tasks_by_day[day] = _tasks_from_list(items)

        goals_by_day: dict[str, Goals] = {}
        goals_raw = raw.get("goalsByDate")
        if isinstance(goals_raw, dict):
            for day, item in goals_raw.items():
                g = Goals.from_dict(item)
                if isinstance(day, str) and g is not None:
                    goals_by_day[day] = g

        tasks_day = raw.get("tasksDate")
        active_id = raw.get("activeTaskId")
        return cls(
            tasks_by_day=tasks_by_day,
            goals_by_day=goals_by_day,
            tasks_day=tasks_day if isinstance(tasks_day, str) and tasks_day else None,
            active_task_id=active_id if isinstance(active_id, str) and active_id else None,
            active_start=_num(raw.get("activeTaskStartTime")) or None,
            legacy_tasks=_tasks_from_list(raw.get("tasks")),
        )
