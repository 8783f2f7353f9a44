# tests/conftest.py

from __future__ import annotations

from types import SimpleNamespace

import pytest

from tasklog.core.clock import at_local_time
from tasklog.core.state import AppState
from tasklog.tracking.sessions import SessionTracker
from tasklog.tracking.state import TrackerState

from .fakes import FakeCalendar, FakeClock, FakeSnapshotStore

DAY = "2024-05-01"


@pytest.fixture()
def clock() -> FakeClock:
    # 10:00 host-local, so day keys do not depend on the machine's timezone.
    return FakeClock(at_local_time(DAY, 10))


@pytest.fixture()
def tracker(clock: FakeClock) -> SessionTracker:
    return SessionTracker(TrackerState(selected_day=DAY), clock)


@pytest.fixture()
def store() -> FakeSnapshotStore:
    return FakeSnapshotStore()


@pytest.fixture()
def settings() -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and lifecycle.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        sync_debounce_seconds=0.0,
        tick_seconds=3600.0,
        clock_tick_seconds=3600.0,
        auto_stop_seconds=35999.0,
    )


@pytest.fixture()
def state(settings, clock, tracker, store) -> AppState:
    """AppState wired with deterministic fakes (not logged in)."""
    return AppState(
        settings=settings,
        clock=clock,
        tracker=tracker,
        store=store,
        calendar=FakeCalendar(),
        calendar_token="token",
    )
