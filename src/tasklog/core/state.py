# src/tasklog/core/state.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .ports import CalendarProvider, Clock, SnapshotStore

if TYPE_CHECKING:
    from ..sync.reconciler import SyncReconciler
    from ..tracking.sessions import SessionTracker
    from ..tracking.state import TrackerState
    from ..tracking.ticker import Ticker


@dataclass
class AppState:
    # Store Settings on the state for easy access in other modules later.
    settings: object

    clock: Clock
    tracker: SessionTracker
    store: SnapshotStore
    calendar: CalendarProvider | None = None

    # Per-login wiring (see lifecycle.login / lifecycle.logout).
    user_id: str | None = None
    sync: SyncReconciler | None = None
    tickers: list[Ticker] = field(default_factory=list)

    calendar_token: str | None = None
    calendar_connected: bool = False

    @property
    def tracking(self) -> TrackerState:
        return self.tracker.state
