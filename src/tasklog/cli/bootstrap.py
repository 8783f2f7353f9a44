# src/tasklog/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires concrete implementations into AppState (clock/tracker/store/calendar).
"""

from __future__ import annotations

import logging

from ..calendar.client import GoogleCalendarClient
from ..config import get_settings
from ..core.clock import SystemClock
from ..core.state import AppState
from ..storage.snapshot_store import SQLiteSnapshotStore
from ..tracking.sessions import SessionTracker
from ..tracking.state import TrackerState

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.snapshot_db_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings=None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    clock = SystemClock()
    tracker = SessionTracker(
        TrackerState(),
        clock,
        max_session_seconds=settings.auto_stop_seconds,
    )
    calendar = GoogleCalendarClient(
        base_url=settings.calendar_base_url,
        calendar_id=settings.calendar_id,
        timeout_s=settings.calendar_timeout_seconds,
    )

    state = AppState(
        settings=settings,
        clock=clock,
        tracker=tracker,
        store=SQLiteSnapshotStore(settings.snapshot_db_path),
        calendar=calendar,
        calendar_token=settings.calendar_token,
    )
    logger.debug("AppState created (db=%s)", settings.snapshot_db_path)
    return state
