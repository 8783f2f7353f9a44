# src/tasklog/layout.py

"""
Column layout for a day's scheduled blocks.

The day view has room for COLUMN_COUNT side-by-side blocks. Blocks are placed
greedily in start order into the first column where they do not overlap
anything already there. When every column is taken the block goes to column 0
and overlaps visually; more columns are never created.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from .core.clock import at_local_time, day_key
from .core.models import Task

COLUMN_COUNT = 3
DEFAULT_START_HOUR = 9


@dataclass(frozen=True, slots=True)
class ScheduledBlock:
    task_id: str
    start: float
    end: float

    def overlaps(self, other: ScheduledBlock) -> bool:
        # Half-open [start, end): touching blocks do not overlap.
        return self.start < other.end and self.end > other.start


def assign_columns(blocks: Iterable[ScheduledBlock], column_count: int = COLUMN_COUNT) -> dict[str, int]:
    """Return task_id -> column index (0-based)."""
    columns: list[list[ScheduledBlock]] = [[] for _ in range(column_count)]
    out: dict[str, int] = {}

    for block in sorted(blocks, key=lambda b: b.start):
        for idx, members in enumerate(columns):
            if not any(block.overlaps(m) for m in members):
                assigned = idx
                break
        else:
            # All columns busy: accepted visual overlap in the first column.
            assigned = 0
        columns[assigned].append(block)
        out[block.task_id] = assigned
    return out


def scheduled_blocks(tasks: Iterable[Task], day: str) -> list[ScheduledBlock]:
    """
    Collect the blocks to lay out for `day`.

    - estimatedTime + scheduledStart/End: used as-is when the start falls on `day`
    - estimatedTime only: placed at the first session's start (or 09:00) on `day`
    """
    seen: set[str] = set()
    out: list[ScheduledBlock] = []

    for task in tasks:
        if task.id in seen or not task.estimated_time:
            continue

        if task.scheduled_start is not None and task.scheduled_end is not None:
            if day_key(task.scheduled_start) != day:
                continue
            block = ScheduledBlock(task.id, task.scheduled_start, task.scheduled_end)
        else:
            first = next((s for s in task.sessions if s.start), None)
            if first is not None:
                time_of_day = first.start - at_local_time(day_key(first.start), 0)
                start = at_local_time(day, 0) + time_of_day
            else:
                start = at_local_time(day, DEFAULT_START_HOUR)
            block = ScheduledBlock(task.id, start, start + task.estimated_time)

        seen.add(task.id)
        out.append(block)
    return out
