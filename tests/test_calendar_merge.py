# tests/test_calendar_merge.py

from __future__ import annotations

from datetime import date

import pytest

from tasklog.calendar.events import (
    ALL_DAY_DURATION_SECONDS,
    UNTITLED_EVENT,
    CalendarEvent,
    merge_calendar_events,
    parse_events,
)
from tasklog.core.clock import at_local_time
from tasklog.core.models import Session, Task

from .conftest import DAY


def _timed(event_id: str, start_h: int, end_h: int, summary: str = "Standup") -> dict:
    return {
        "id": event_id,
        "summary": summary,
        "start": {"dateTime": f"{DAY}T{start_h:02d}:00:00"},
        "end": {"dateTime": f"{DAY}T{end_h:02d}:00:00"},
    }


def _manual(task_id: str, order: int) -> Task:
    return Task(task_id, f"Manual {task_id}", "#667eea", order)


def test_import_adds_calendar_task_after_manual_ones() -> None:
    existing = [_manual("1", 0), _manual("2", 1)]
    result = merge_calendar_events(existing, parse_events([_timed("e1", 9, 10)]))

    assert [t.id for t in result.tasks] == ["1", "2", "calendar-e1"]
    added = result.tasks[-1]
    assert added.order == 2
    assert added.name == "Standup"
    assert added.estimated_time == 3600
    assert added.scheduled_start == at_local_time(DAY, 9)
    assert added.scheduled_end == at_local_time(DAY, 10)
    assert added.sessions == []
    assert added.total_time == 0
    assert result.added == ["calendar-e1"]


def test_reimport_is_idempotent_and_keeps_sessions() -> None:
    events = parse_events([_timed("e1", 9, 10)])
    first = merge_calendar_events([_manual("1", 0)], events).tasks

    cal = first[-1]
    cal.sessions.append(Session(at_local_time(DAY, 9), at_local_time(DAY, 9, 30)))
    cal.recompute_total()

    moved = parse_events([_timed("e1", 11, 13, summary="Renamed")])
    second = merge_calendar_events(first, moved)

    assert [t.id for t in second.tasks] == [t.id for t in first]
    updated = second.tasks[-1]
    assert updated.name == "Standup"
    assert updated.order == cal.order
    assert updated.total_time == 1800
    assert len(updated.sessions) == 1
    assert updated.scheduled_start == at_local_time(DAY, 11)
    assert updated.estimated_time == 2 * 3600
    assert second.added == []
    assert second.updated == ["calendar-e1"]

    third = merge_calendar_events(second.tasks, moved)
    assert [t.id for t in third.tasks] == [t.id for t in second.tasks]


def test_manual_tasks_and_unmatched_calendar_tasks_are_untouched() -> None:
    stale = Task("calendar-gone", "Gone", "#000", 1, estimated_time=60, scheduled_start=1.0, scheduled_end=61.0)
    existing = [_manual("1", 0), stale]

    result = merge_calendar_events(existing, parse_events([_timed("e2", 9, 10)]))

    assert result.tasks[0] is existing[0]
    assert result.tasks[1] is stale
    assert result.tasks[2].id == "calendar-e2"
    assert result.tasks[2].order == 2


def test_all_day_event_becomes_eight_hour_block() -> None:
    events = parse_events([{"id": "off", "summary": "Offsite", "start": {"date": DAY}, "end": {"date": "2024-05-02"}}])
    task = merge_calendar_events([], events).tasks[0]

    assert task.estimated_time == ALL_DAY_DURATION_SECONDS == 8 * 3600
    assert task.scheduled_start == at_local_time(DAY, 9)
    assert task.scheduled_end == at_local_time(DAY, 17)
    assert task.order == 0


def test_malformed_events_are_skipped() -> None:
    events = parse_events(
        [
            {"summary": "no id", "start": {"dateTime": f"{DAY}T09:00:00"}, "end": {"dateTime": f"{DAY}T10:00:00"}},
            {"id": "nostart", "end": {"dateTime": f"{DAY}T10:00:00"}},
            {"id": "backwards", **{k: v for k, v in _timed("x", 11, 10).items() if k != "id"}},
            {"id": "noend", "start": {"dateTime": f"{DAY}T09:00:00"}},
            "not a mapping",
            _timed("ok", 9, 10),
        ]
    )
    assert [e.id for e in events] == ["ok"]


def test_duplicate_event_ids_keep_last_occurrence() -> None:
    events = parse_events([_timed("e1", 9, 10, summary="old"), _timed("e1", 12, 13, summary="new")])
    assert len(events) == 1
    assert events[0].summary == "new"


def test_untitled_and_flat_shapes() -> None:
    ev = CalendarEvent.from_api({"id": "flat", "start": f"{DAY}T09:00:00", "end": f"{DAY}T09:45:00"})
    assert ev is not None
    assert ev.summary == UNTITLED_EVENT
    assert ev.window()[2] == 45 * 60

    day_only = CalendarEvent.from_api({"id": "d", "start": DAY, "end": DAY})
    assert day_only is not None
    assert day_only.all_day == date(2024, 5, 1)


def test_event_without_boundaries_has_no_window() -> None:
    event = CalendarEvent(id="x", summary="Floating")
    with pytest.raises(ValueError):
        event.window()
