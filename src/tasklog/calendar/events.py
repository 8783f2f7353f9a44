# src/tasklog/calendar/events.py

"""
Calendar events -> tasks.

Events are validated into CalendarEvent records at the boundary; anything
malformed is skipped. The merge only ever touches scheduling fields of tasks
it already imported, so recorded sessions survive any number of re-imports.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Any

from ..core.clock import at_local_time
from ..core.models import CALENDAR_ID_PREFIX, TASK_COLORS, Task

logger = logging.getLogger(__name__)

ALL_DAY_START_HOUR = 9
ALL_DAY_END_HOUR = 17
ALL_DAY_DURATION_SECONDS = (ALL_DAY_END_HOUR - ALL_DAY_START_HOUR) * 3600

UNTITLED_EVENT = "Untitled event"


def _parse_instant(raw: Any) -> float | None:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        return float(raw)
    if isinstance(raw, datetime):
        return raw.timestamp()
    if isinstance(raw, str) and raw.strip():
        try:
            # Naive values are host-local.
            return datetime.fromisoformat(raw.strip().replace("Z", "+00:00")).timestamp()
        except ValueError:
            return None
    return None


def _parse_date(raw: Any) -> date | None:
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    if isinstance(raw, str):
        try:
            return date.fromisoformat(raw.strip())
        except ValueError:
            return None
    return None


def _split_boundary(raw: Any) -> tuple[float | None, date | None]:
    """
    Interpret one event boundary.

    Google shape: {"dateTime": "..."} or {"date": "YYYY-MM-DD"}.
    Flat shape: ISO string, datetime, date, or timestamp.
    Returns (instant, all_day_date); at most one is set.
    """
    if isinstance(raw, dict):
        if raw.get("dateTime"):
            return _parse_instant(raw.get("dateTime")), None
        if raw.get("date"):
            return None, _parse_date(raw.get("date"))
        return None, None
    if isinstance(raw, date) and not isinstance(raw, datetime):
        return None, raw
    if isinstance(raw, str) and len(raw.strip()) == 10:
        return None, _parse_date(raw)
    return _parse_instant(raw), None


@dataclass(frozen=True, slots=True)
class CalendarEvent:
    id: str
    summary: str
    start: float | None = None
    end: float | None = None
    all_day: date | None = None

    @classmethod
    def from_api(cls, raw: Any) -> CalendarEvent | None:
        """Validate a raw event mapping. Returns None (event skipped) when it is unusable."""
        if not isinstance(raw, dict):
            return None
        event_id = raw.get("id")
        if not isinstance(event_id, str) or not event_id.strip():
            return None

        summary = raw.get("summary")
        summary = summary.strip() if isinstance(summary, str) and summary.strip() else UNTITLED_EVENT

        start, start_date = _split_boundary(raw.get("start"))
        end, _ = _split_boundary(raw.get("end"))

        if raw.get("allDay") is True and start_date is None and start is not None:
            start_date = datetime.fromtimestamp(start).date()

        if start_date is not None:
            return cls(id=event_id, summary=summary, all_day=start_date)

        if start is None or end is None or end <= start:
            return None
        return cls(id=event_id, summary=summary, start=start, end=end)

    @property
    def task_id(self) -> str:
        return f"{CALENDAR_ID_PREFIX}{self.id}"

    def window(self) -> tuple[float, float, float]:
        """(scheduled_start, scheduled_end, estimated_time) in seconds."""
        if self.all_day is not None:
            key = self.all_day.strftime("%Y-%m-%d")
            start = at_local_time(key, ALL_DAY_START_HOUR)
            return start, at_local_time(key, ALL_DAY_END_HOUR), float(ALL_DAY_DURATION_SECONDS)
        if self.start is None or self.end is None:
            raise ValueError(f"Calendar event {self.id} has no time window")
        return self.start, self.end, self.end - self.start

    def to_task(self, *, position: int, order: int) -> Task:
        start, end, estimated = self.window()
        return Task(
            id=self.task_id,
            name=self.summary,
            color=TASK_COLORS[position % len(TASK_COLORS)],
            order=order,
            estimated_time=estimated if estimated > 0 else None,
            scheduled_start=start,
            scheduled_end=end,
        )


def parse_events(items: Iterable[Any]) -> list[CalendarEvent]:
    """Validate raw events, collapsing duplicate ids to the last occurrence."""
    by_id: dict[str, CalendarEvent] = {}
    for raw in items:
        event = CalendarEvent.from_api(raw)
        if event is None:
            logger.info("Skipping unusable calendar event: %r", raw)
            continue
        by_id[event.id] = event
    return list(by_id.values())


@dataclass(frozen=True, slots=True)
class MergeResult:
    tasks: list[Task]
    added: list[str] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)


def merge_calendar_events(existing: list[Task], events: list[CalendarEvent]) -> MergeResult:
    """
    Merge events into one day's task list.

    - existing calendar tasks with a matching event: scheduling fields refreshed,
      sessions/totalTime untouched
    - manual tasks: unchanged, original order kept
    - unmatched events: appended, order continuing after the current maximum
    """
    candidates: dict[str, tuple[int, CalendarEvent]] = {}
    for position, event in enumerate(events):
        candidates[event.task_id] = (position, event)

    updated: list[str] = []
    merged: list[Task] = []
    for task in existing:
        hit = candidates.get(task.id) if task.is_calendar else None
        if hit is None:
            merged.append(task)
            continue
        start, end, estimated = hit[1].window()
        merged.append(
            replace(
                task,
                estimated_time=estimated if estimated > 0 else None,
                scheduled_start=start,
                scheduled_end=end,
            )
        )
        updated.append(task.id)

    existing_ids = {t.id for t in existing}
    next_order = max((t.order for t in existing), default=-1) + 1
    added: list[str] = []
    for task_id, (position, event) in candidates.items():
        if task_id in existing_ids:
            continue
        merged.append(event.to_task(position=position, order=next_order))
        next_order += 1
        added.append(task_id)

    logger.debug("Calendar merge: %d added, %d updated, %d total", len(added), len(updated), len(merged))
    return MergeResult(tasks=merged, added=added, updated=updated)
