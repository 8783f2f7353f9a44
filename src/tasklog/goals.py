# src/tasklog/goals.py

from __future__ import annotations

import logging

from .core.clock import shift_day
from .core.errors import ValidationError
from .core.models import GOALS_PER_QUADRANT, Goal, Goals, Quadrant, clamp_rate
from .tracking.state import TrackerState

logger = logging.getLogger(__name__)


def goals_for(state: TrackerState, day: str) -> Goals:
    """Return the day's goals, creating the empty defaults on first read."""
    goals = state.goals_by_day.get(day)
    if goals is None:
        goals = Goals.default()
        state.goals_by_day[day] = goals
    return goals


def update_goal(
    state: TrackerState,
    day: str,
    quadrant: Quadrant | str,
    index: int,
    *,
    text: str | None = None,
    rate: float | None = None,
) -> Goal:
    q = quadrant if isinstance(quadrant, Quadrant) else Quadrant.parse(quadrant)
    if q is None:
        raise ValidationError(f"Unknown quadrant: {quadrant!r}")
    if index < 0 or index >= GOALS_PER_QUADRANT:
        raise ValidationError(f"Goal index must be 0..{GOALS_PER_QUADRANT - 1}")

    # Replace the day's record instead of mutating it in place.
    goals = goals_for(state, day).copy()
    goal = goals.quadrant(q)[index]
    if text is not None:
        goal.text = text
    if rate is not None:
        goal.achievement_rate = clamp_rate(rate)
    state.goals_by_day[day] = goals
    logger.debug("Goal updated day=%s %s[%d]", day, q.value, index)
    return goal


def copy_previous_day_goals(state: TrackerState, day: str) -> bool:
    """Copy text and rates from the day before `day`. Returns False if there is nothing to copy."""
    prev = state.goals_by_day.get(shift_day(day, -1))
    if prev is None:
        return False

    copied = Goals.default()
    for q in Quadrant:
        for i, g in enumerate(prev.quadrant(q)[:GOALS_PER_QUADRANT]):
            copied.quadrant(q)[i] = Goal(id=f"{q.prefix}-{i}", text=g.text, achievement_rate=g.achievement_rate)
    state.goals_by_day[day] = copied
    logger.info("Copied goals from previous day into %s", day)
    return True
