# tests/test_lifecycle.py

from __future__ import annotations

import asyncio

import pytest

from tasklog.core.clock import at_local_time
from tasklog.core.errors import AuthExpired, ValidationError
from tasklog.core.identity import StaticIdentity
from tasklog.core.lifecycle import follow_identity, login, logout, roll_over_day
from tasklog.tracking import api

from .conftest import DAY
from .fakes import FakeCalendar


async def _settle() -> None:
    for _ in range(5):
        await asyncio.sleep(0)


def _event(event_id: str, start_h: int, end_h: int, day: str = DAY) -> dict:
    return {
        "id": event_id,
        "summary": "Meeting",
        "start": {"dateTime": f"{day}T{start_h:02d}:00:00"},
        "end": {"dateTime": f"{day}T{end_h:02d}:00:00"},
    }


@pytest.mark.asyncio
async def test_login_wires_sync_and_tickers(state, store) -> None:
    await login(state, "u1")

    assert state.user_id == "u1"
    assert state.sync is not None and state.sync.attached
    assert len(store.listeners["u1"]) == 1
    assert [t.name for t in state.tickers] == ["auto-stop", "clock"]
    assert all(t.running for t in state.tickers)
    assert state.tracking.selected_day == DAY

    await logout(state)


@pytest.mark.asyncio
async def test_logout_writes_final_snapshot_and_tears_down(state, store) -> None:
    await login(state, "u1")
    tickers = list(state.tickers)
    await api.add_task(state, "Write report")

    await logout(state)

    assert len(store.puts) == 1
    assert store.puts[-1][1]["tasksByDate"][DAY][0]["name"] == "Write report"
    assert state.user_id is None
    assert state.sync is None
    assert state.tickers == []
    assert not any(t.running for t in tickers)
    assert store.listeners["u1"] == []
    assert state.tracking.tasks_by_day == {}


@pytest.mark.asyncio
async def test_start_and_stop_persist_immediately(state, store, clock) -> None:
    await login(state, "u1")
    task = await api.add_task(state, "A")

    await api.start_task(state, task.id)
    assert store.puts[-1][1]["activeTaskId"] == task.id

    clock.advance(30)
    await api.stop_task(state, task.id)
    assert store.puts[-1][1]["activeTaskId"] is None
    assert store.puts[-1][1]["tasksByDate"][DAY][0]["totalTime"] == 30

    await logout(state)


@pytest.mark.asyncio
async def test_session_edit_persists_immediately(state, store, clock) -> None:
    await login(state, "u1")
    task = await api.add_task(state, "A")
    await api.start_task(state, task.id)
    clock.advance(60)
    await api.stop_task(state, task.id)
    writes = len(store.puts)

    await api.edit_session(state, task.id, 0, "08:00", "09:00")

    assert len(store.puts) == writes + 1
    assert store.puts[-1][1]["tasksByDate"][DAY][0]["totalTime"] == 3600

    with pytest.raises(ValidationError):
        await api.edit_session(state, task.id, 0, "09:00", "08:00")
    assert len(store.puts) == writes + 1

    await logout(state)


@pytest.mark.asyncio
async def test_operations_work_locally_without_login(state, store) -> None:
    task = await api.add_task(state, "Offline")
    assert await api.start_task(state, task.id) is True
    assert store.puts == []


@pytest.mark.asyncio
async def test_import_calendar_day_merges_events(state) -> None:
    state.calendar = FakeCalendar(
        [
            {
                "id": "e1",
                "summary": "Standup",
                "start": {"dateTime": f"{DAY}T09:00:00"},
                "end": {"dateTime": f"{DAY}T09:15:00"},
            }
        ]
    )
    manual = await api.add_task(state, "Manual")

    result = await api.import_calendar_day(state)

    assert result.added == ["calendar-e1"]
    assert [t.id for t in state.tracking.tasks_for(DAY)] == [manual.id, "calendar-e1"]
    assert state.calendar_connected is True
    token, time_min, time_max = state.calendar.calls[0]
    assert token == "token"
    assert time_max - time_min >= 23 * 3600


@pytest.mark.asyncio
async def test_reimport_of_moved_event_is_written(state, store) -> None:
    await login(state, "u1")
    state.calendar = FakeCalendar([_event("e1", 9, 10)])
    await api.import_calendar_day(state)
    await _settle()
    writes = len(store.puts)

    state.calendar.events = [_event("e1", 13, 15)]
    result = await api.import_calendar_day(state)

    assert result.updated == ["calendar-e1"]
    assert len(store.puts) == writes + 1
    stored = store.puts[-1][1]["tasksByDate"][DAY][0]
    assert stored["estimatedTime"] == 7200
    assert stored["scheduledStart"] == at_local_time(DAY, 13)

    await logout(state)


@pytest.mark.asyncio
async def test_import_with_expired_token_changes_nothing(state) -> None:
    state.calendar = FakeCalendar(expired=True)
    await api.add_task(state, "Manual")
    before = list(state.tracking.tasks_for(DAY))

    with pytest.raises(AuthExpired):
        await api.import_calendar_day(state)

    assert state.tracking.tasks_for(DAY) == before
    assert state.calendar_connected is False
    assert state.calendar_token is None


@pytest.mark.asyncio
async def test_follow_identity_logs_in_and_out(state) -> None:
    identity = StaticIdentity("u1")
    unsubscribe = follow_identity(state, identity)
    await _settle()
    assert state.user_id == "u1"

    identity.sign_in("u2")
    await _settle()
    assert state.user_id == "u2"

    identity.sign_out()
    await _settle()
    assert state.user_id is None

    unsubscribe()


@pytest.mark.asyncio
async def test_day_rollover_stops_running_task_and_imports_new_day(state, store, clock) -> None:
    await login(state, "u1")
    task = await api.add_task(state, "Late shift")
    await api.start_task(state, task.id)
    writes = len(store.puts)

    next_day = "2024-05-02"
    state.calendar = FakeCalendar([_event("e2", 9, 10, day=next_day)])
    state.calendar_connected = True
    clock.set(at_local_time(next_day, 0, 5))

    await state.tickers[1].tick()
    await _settle()

    assert state.tracking.selected_day == next_day
    assert state.tracking.active_task_id is None
    assert not task.has_open_session
    assert len(store.puts) > writes
    assert store.puts[writes][1]["activeTaskId"] is None
    assert len(state.calendar.calls) == 1
    assert [t.id for t in state.tracking.tasks_for(next_day)] == ["calendar-e2"]
    assert state.tracking.now_marker == clock.now()

    await logout(state)


@pytest.mark.asyncio
async def test_clock_tick_within_same_day_changes_nothing(state, store, clock) -> None:
    await login(state, "u1")
    task = await api.add_task(state, "A")
    await api.start_task(state, task.id)
    state.calendar_connected = True
    writes = len(store.puts)

    clock.advance(60)
    assert await roll_over_day(state, DAY) == DAY

    assert state.tracking.selected_day == DAY
    assert state.tracking.active_task_id == task.id
    assert len(store.puts) == writes
    assert state.calendar.calls == []

    await logout(state)
