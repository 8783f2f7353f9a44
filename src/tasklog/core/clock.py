# src/tasklog/core/clock.py

"""
Host clock helpers.

Instants are POSIX timestamps in seconds. Day keys are host-local calendar
dates formatted as YYYY-MM-DD.
"""

from __future__ import annotations

import re
import time
from datetime import date, datetime, timedelta

from .errors import ValidationError

_HHMM = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*$")


class SystemClock:
    def now(self) -> float:
        return time.time()


def day_key(ts: float) -> str:
    return datetime.fromtimestamp(ts).strftime("%Y-%m-%d")


def parse_day_key(key: str) -> date:
    try:
        return datetime.strptime(key, "%Y-%m-%d").date()
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Invalid day key: {key!r} (expected YYYY-MM-DD)") from e


def shift_day(key: str, days: int) -> str:
    return (parse_day_key(key) + timedelta(days=days)).strftime("%Y-%m-%d")


def at_local_time(key: str, hour: int, minute: int = 0) -> float:
    """Timestamp of hour:minute host-local time on the given day."""
    d = parse_day_key(key)
    return datetime(d.year, d.month, d.day, hour, minute).timestamp()


def day_bounds(key: str) -> tuple[float, float]:
    """[start, end) of the day in host-local time."""
    start = at_local_time(key, 0, 0)
    d = parse_day_key(key) + timedelta(days=1)
    end = datetime(d.year, d.month, d.day).timestamp()
    return start, end


def parse_hhmm(key: str, text: str) -> float:
    """Parse 'HH:MM' on the given day. Raises ValidationError on malformed input."""
    m = _HHMM.match(text or "")
    if not m:
        raise ValidationError(f"Invalid time: {text!r} (expected HH:MM)")
    hour, minute = int(m.group(1)), int(m.group(2))
    if hour > 23 or minute > 59:
        raise ValidationError(f"Invalid time: {text!r} (expected HH:MM)")
    return at_local_time(key, hour, minute)


def format_duration(seconds: float) -> str:
    total = max(0, int(seconds))
    return f"{total // 3600:02d}:{(total % 3600) // 60:02d}:{total % 60:02d}"


def format_hhmm(ts: float) -> str:
    return datetime.fromtimestamp(ts).strftime("%H:%M")
