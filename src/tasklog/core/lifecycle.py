# src/tasklog/core/lifecycle.py

"""
Per-user wiring.

login() builds the sync reconciler, subscribes to the store and starts both
tickers (fast: auto-stop guard, slow: display clock and day rollover).
logout() writes the final snapshot, then tears all of it down so nothing keeps
operating on the previous user's data.
"""

from __future__ import annotations

import asyncio
import logging

from .clock import day_key
from .errors import TasklogError
from .ports import IdentityProvider, Unsubscribe
from .state import AppState
from ..sync.reconciler import SyncReconciler
from ..tracking import api
from ..tracking.guard import AutoStopGuard
from ..tracking.ticker import Ticker

logger = logging.getLogger(__name__)


def _setting(app: AppState, name: str, default: float) -> float:
    return float(getattr(app.settings, name, default))


async def login(app: AppState, user_id: str) -> None:
    user_id = (user_id or "").strip()
    if not user_id:
        raise ValueError("user_id is required")
    if app.user_id == user_id and app.sync is not None:
        return
    if app.user_id is not None:
        await logout(app)

    now = app.clock.now()
    app.tracking.reset()
    app.tracking.selected_day = day_key(now)
    app.tracking.now_marker = now
    app.user_id = user_id

    sync = SyncReconciler(
        app.tracker,
        app.store,
        user_id=user_id,
        clock=app.clock,
        debounce_seconds=_setting(app, "sync_debounce_seconds", 1.0),
    )
    app.sync = sync

    async def persist_auto_stop(task_id: str) -> None:
        await sync.flush(f"auto-stop {task_id}")

    current_day = app.tracking.selected_day

    async def on_clock_tick() -> None:
        nonlocal current_day
        app.tracking.now_marker = app.clock.now()
        current_day = await roll_over_day(app, current_day)

    guard = AutoStopGuard(app.tracker, on_auto_stop=persist_auto_stop)
    app.tickers = [
        Ticker("auto-stop", _setting(app, "tick_seconds", 1.0), guard.tick),
        Ticker("clock", _setting(app, "clock_tick_seconds", 60.0), on_clock_tick),
    ]

    sync.attach()
    for t in app.tickers:
        t.start()
    logger.info("Logged in user=%s", user_id)


async def roll_over_day(app: AppState, previous_day: str) -> str:
    """
    Move to the new day once the host date passes `previous_day`.

    The running task is stopped and written at once; today's calendar events
    are imported when a calendar is connected. Returns today's key.
    """
    now = app.clock.now()
    today = day_key(now)
    if today == previous_day:
        return today

    logger.info("Day rolled over %s -> %s", previous_day, today)
    app.tracking.selected_day = today
    stopped = app.tracker.stop_active(now)
    if stopped is not None and app.sync is not None:
        await app.sync.flush(f"day-rollover {stopped}")

    if app.calendar_connected and app.calendar is not None:
        try:
            await api.import_calendar_day(app, today)
        except TasklogError as exc:
            logger.warning("Calendar import on day rollover failed: %s", exc)
    return today


async def logout(app: AppState) -> None:
    """Final immediate write, then cancel timers and the subscription, then forget local state."""
    if app.user_id is None:
        return
    user_id = app.user_id

    for t in app.tickers:
        t.cancel()
    app.tickers = []

    if app.sync is not None:
        await app.sync.flush("logout")
        app.sync.detach()
    app.sync = None

    app.tracking.reset()
    app.user_id = None
    app.calendar_token = None
    app.calendar_connected = False
    logger.info("Logged out user=%s", user_id)


def follow_identity(app: AppState, identity: IdentityProvider) -> Unsubscribe:
    """
    Log in/out as the identity provider transitions.

    Must be called with an event loop running; transitions are applied in order.
    """
    loop = asyncio.get_running_loop()
    chain: list[asyncio.Future[None]] = []

    async def apply(user_id: str | None, previous: asyncio.Future[None] | None) -> None:
        if previous is not None:
            await asyncio.gather(previous, return_exceptions=True)
        try:
            if user_id:
                await login(app, user_id)
            else:
                await logout(app)
        except Exception:
            logger.exception("Auth transition failed (user=%s)", user_id)

    def on_change(user_id: str | None) -> None:
        previous = chain[-1] if chain else None
        chain[:] = [loop.create_task(apply(user_id, previous))]

    return identity.on_auth_state_changed(on_change)
