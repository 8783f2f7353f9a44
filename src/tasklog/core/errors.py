# src/tasklog/core/errors.py

from __future__ import annotations


class TasklogError(Exception):
    """Base class for errors raised by the tracker core."""


class ValidationError(TasklogError):
    """Malformed local input (session edit, time string, goal slot). Nothing was changed."""


class TaskNotFound(ValidationError):
    def __init__(self, task_id: str) -> None:
        super().__init__(f"Unknown task: {task_id}")
        self.task_id = task_id


class AuthExpired(TasklogError):
    """The calendar provider rejected the bearer token; re-authorization is required."""


class CalendarError(TasklogError):
    """Calendar query failed for a reason other than an expired token."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class PersistenceFailure(TasklogError):
    """An outbound snapshot write was rejected by the durable store."""
