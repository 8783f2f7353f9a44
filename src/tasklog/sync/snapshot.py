# src/tasklog/sync/snapshot.py

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping

from ..core.models import Goals, Snapshot, Task
from ..tracking.state import TrackerState

Fingerprint = tuple[object, ...]


def build_snapshot(state: TrackerState, today: str) -> Snapshot:
    """Project local state into the persisted shape. Lists are copied; tasks are shared."""
    return Snapshot(
        tasks_by_day={day: list(tasks) for day, tasks in state.tasks_by_day.items()},
        goals_by_day=dict(state.goals_by_day),
        tasks_day=today,
        active_task_id=state.active_task_id,
        active_start=state.active_start if state.active_task_id else None,
    )


def task_ids(tasks: Iterable[Task]) -> tuple[int, frozenset[str]]:
    ids = [t.id for t in tasks]
    return len(ids), frozenset(ids)


def same_id_set(a: Iterable[Task], b: Iterable[Task]) -> bool:
    """Diff-gate: same count and same set of task ids."""
    return task_ids(a) == task_ids(b)


def _goals_key(goals_by_day: Mapping[str, Goals]) -> str:
    return json.dumps({d: g.to_dict() for d, g in goals_by_day.items()}, sort_keys=True)


def structural_fingerprint(snapshot: Snapshot) -> Fingerprint:
    """
    The material part of a snapshot for outbound suppression.

    Field-level task edits (names, cached totals, session bounds) are not part
    of it; operations that change those write immediately instead.
    """
    days = tuple(
        sorted((day, *task_ids(tasks)) for day, tasks in snapshot.tasks_by_day.items())
    )
    return (
        days,
        _goals_key(snapshot.goals_by_day),
        snapshot.active_task_id,
        snapshot.tasks_day,
    )


def payload_key(snapshot: Snapshot) -> str:
    """Canonical form used to recognize echoes of our own writes."""
    doc = snapshot.to_dict()
    doc.pop("tasks", None)
    return json.dumps(doc, sort_keys=True)


def migrate_legacy(snapshot: Snapshot) -> bool:
    """
    Move a legacy single-day task list into the per-day index.

    Only applied when the recorded day is otherwise empty. Returns True if migrated.
    """
    if not snapshot.legacy_tasks or not snapshot.tasks_day:
        return False
    if snapshot.tasks_by_day.get(snapshot.tasks_day):
        return False
    snapshot.tasks_by_day[snapshot.tasks_day] = list(snapshot.legacy_tasks)
    snapshot.legacy_tasks = []
    return True
