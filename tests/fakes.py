# tests/fakes.py

from __future__ import annotations

import contextlib
from typing import Any

from tasklog.core.errors import AuthExpired
from tasklog.core.ports import SnapshotListener, SnapshotPayload, Unsubscribe
from tasklog.storage.snapshot_store import deep_merge


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: float) -> None:
        self.t = float(now)

    def now(self) -> float:
        return self.t

    def advance(self, seconds: float) -> float:
        self.t += seconds
        return self.t

    def set(self, now: float) -> None:
        self.t = float(now)


class FakeSnapshotStore:
    """
    In-memory SnapshotStore used by reconciler tests.

    Writes are recorded and merged like the real store, but listeners are only
    called through deliver(), so tests control exactly what arrives inbound.
    """

    def __init__(self) -> None:
        self.docs: dict[str, dict[str, Any]] = {}
        self.puts: list[tuple[str, SnapshotPayload]] = []
        self.fail = False
        self.listeners: dict[str, list[SnapshotListener]] = {}

    async def get(self, user_id: str) -> SnapshotPayload | None:
        return self.docs.get(user_id)

    async def put(self, user_id: str, snapshot: SnapshotPayload, *, merge: bool = True) -> None:
        if self.fail:
            raise RuntimeError("store unavailable")
        self.puts.append((user_id, snapshot))
        current = self.docs.get(user_id, {}) if merge else {}
        self.docs[user_id] = deep_merge(current, snapshot)

    def subscribe(self, user_id: str, on_change: SnapshotListener) -> Unsubscribe:
        self.listeners.setdefault(user_id, []).append(on_change)

        def unsubscribe() -> None:
            with contextlib.suppress(ValueError):
                self.listeners.get(user_id, []).remove(on_change)

        return unsubscribe

    def deliver(self, user_id: str, payload: SnapshotPayload | None) -> None:
        for cb in list(self.listeners.get(user_id, [])):
            cb(payload)


class FakeCalendar:
    """CalendarProvider returning canned events (or raising AuthExpired)."""

    def __init__(self, events: list[dict[str, Any]] | None = None, *, expired: bool = False) -> None:
        self.events = list(events or [])
        self.expired = expired
        self.calls: list[tuple[str, float, float]] = []

    async def list_events(self, *, token: str, time_min: float, time_max: float) -> list[dict[str, Any]]:
        self.calls.append((token, time_min, time_max))
        if self.expired:
            raise AuthExpired("token expired")
        return list(self.events)
