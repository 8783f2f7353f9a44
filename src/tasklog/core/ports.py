# src/tasklog/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The core depends on Protocols instead of concrete implementations.
This keeps the durable store, calendar provider and identity source swappable
and makes testing easier.
"""

from typing import Any, Callable, Protocol

SnapshotPayload = dict[str, Any]
# Wire mapping of a Snapshot: {"tasksByDate": ..., "goalsByDate": ..., ...}.

SnapshotListener = Callable[[SnapshotPayload | None], None]
# Called with the latest stored payload, or None when nothing could be read.

Unsubscribe = Callable[[], None]


class Clock(Protocol):
    """Source of 'now' as a POSIX timestamp in seconds."""
    def now(self) -> float: ...


class SnapshotStore(Protocol):
    """
    Durable per-user snapshot storage with push updates.

    subscribe() delivers every stored version, including echoes of this
    client's own writes. Read failures are delivered as None; the callback
    must never be the place where errors surface.
    """

    async def get(self, user_id: str) -> SnapshotPayload | None: ...

    async def put(self, user_id: str, snapshot: SnapshotPayload, *, merge: bool = True) -> None: ...

    def subscribe(self, user_id: str, on_change: SnapshotListener) -> Unsubscribe: ...


class CalendarProvider(Protocol):
    """
    Time-ranged event query.

    Raises AuthExpired when the bearer token is rejected.
    Returns raw event mappings: {id, summary, start, end}.
    """

    async def list_events(self, *, token: str, time_min: float, time_max: float) -> list[dict[str, Any]]: ...


class IdentityProvider(Protocol):
    """Authenticated user id plus a login/logout transition feed."""
    def current_user_id(self) -> str | None: ...
    def on_auth_state_changed(self, callback: Callable[[str | None], None]) -> Unsubscribe: ...
