# src/tasklog/tracking/api.py

"""
High-level operations used by front-ends.

Each helper applies one local mutation and then picks the write mode:
start/stop/delete/clear and manual session edits persist immediately,
everything else goes through the debounced path. Without a logged-in user
the mutation is applied locally only.
"""

from __future__ import annotations

import logging

from ..calendar.events import MergeResult, merge_calendar_events, parse_events
from ..core.clock import day_bounds, day_key
from ..core.errors import AuthExpired, CalendarError
from ..core.models import Goal, Quadrant, Task
from ..core.state import AppState
from ..goals import copy_previous_day_goals as _copy_previous_day_goals
from ..goals import update_goal as _update_goal

logger = logging.getLogger(__name__)


def _day(app: AppState, day: str | None) -> str:
    return day or app.tracking.selected_day or day_key(app.clock.now())


def _schedule(app: AppState) -> None:
    if app.sync is not None:
        app.sync.schedule()


async def _flush(app: AppState, reason: str) -> bool:
    if app.sync is None:
        return False
    return await app.sync.flush(reason)


async def add_task(app: AppState, name: str, *, color: str | None = None, day: str | None = None) -> Task:
    task = app.tracker.add_task(name, color=color, day=_day(app, day))
    _schedule(app)
    return task


async def start_task(app: AppState, task_id: str) -> bool:
    started = app.tracker.start(task_id)
    if started:
        await _flush(app, "start")
    return started


async def stop_task(app: AppState, task_id: str) -> int:
    closed = app.tracker.stop(task_id)
    await _flush(app, "stop")
    return closed


async def toggle_task(app: AppState, task_id: str) -> bool:
    running = app.tracker.toggle(task_id)
    await _flush(app, "start" if running else "stop")
    return running


async def delete_task(app: AppState, task_id: str) -> Task:
    task = app.tracker.delete_task(task_id)
    await _flush(app, "delete")
    return task


async def clear_day(app: AppState, day: str | None = None) -> int:
    removed = app.tracker.clear_day(_day(app, day))
    await _flush(app, "clear-day")
    return removed


async def reset_day(app: AppState, day: str | None = None) -> int:
    removed = app.tracker.reset_day(_day(app, day))
    await _flush(app, "reset-day")
    return removed


async def edit_session(
    app: AppState,
    task_id: str,
    index: int,
    start_hhmm: str,
    end_hhmm: str,
    *,
    day: str | None = None,
) -> None:
    app.tracker.edit_session_times(task_id, index, start_hhmm, end_hhmm, _day(app, day))
    await _flush(app, "edit-session")


async def delete_session(app: AppState, task_id: str, index: int) -> None:
    app.tracker.delete_session(task_id, index)
    await _flush(app, "delete-session")


async def update_goal(
    app: AppState,
    quadrant: Quadrant | str,
    index: int,
    *,
    text: str | None = None,
    rate: float | None = None,
    day: str | None = None,
) -> Goal:
    goal = _update_goal(app.tracking, _day(app, day), quadrant, index, text=text, rate=rate)
    _schedule(app)
    return goal


async def copy_previous_day_goals(app: AppState, day: str | None = None) -> bool:
    copied = _copy_previous_day_goals(app.tracking, _day(app, day))
    if copied:
        _schedule(app)
    return copied


async def select_day(app: AppState, day: str) -> None:
    app.tracking.selected_day = day
    _schedule(app)


async def import_calendar_day(app: AppState, day: str | None = None) -> MergeResult:
    """
    Fetch `day`'s events and merge them into that day's tasks.

    AuthExpired is re-raised (after marking the calendar disconnected) with no
    change to the task index.
    """
    if app.calendar is None:
        raise CalendarError("No calendar provider configured")
    day = _day(app, day)
    time_min, time_max = day_bounds(day)

    try:
        raw = await app.calendar.list_events(
            token=app.calendar_token or "",
            time_min=time_min,
            time_max=time_max,
        )
    except AuthExpired:
        app.calendar_token = None
        app.calendar_connected = False
        raise

    app.calendar_connected = True
    events = parse_events(raw)
    result = merge_calendar_events(app.tracking.tasks_for(day), events)
    app.tracking.tasks_by_day[day] = result.tasks
    logger.info(
        "Calendar import day=%s events=%d added=%d updated=%d",
        day,
        len(events),
        len(result.added),
        len(result.updated),
    )
    if result.updated:
        # Moved events keep their ids, so the debounced write would be suppressed.
        await _flush(app, "calendar-import")
    else:
        _schedule(app)
    return result
