# src/tasklog/cli/commands.py

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import cast

from ..core import lifecycle
from ..core.clock import day_key, format_duration, format_hhmm, parse_day_key, shift_day
from ..core.errors import AuthExpired, CalendarError, TasklogError, ValidationError
from ..core.models import Quadrant, Task
from ..core.state import AppState
from ..goals import goals_for
from ..layout import assign_columns, scheduled_blocks
from ..tracking import api

CommandEmitter = Callable[[str], None]
CommandResult = str | Awaitable[str]
CommandHandler2 = Callable[[AppState, list[str]], CommandResult]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], CommandResult]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console (/help, /start, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    async def handle(
        self,
        app: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.

        Tracker errors (unknown task, bad time string, ...) become the reply text.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except Exception:
            nparams = 3

        try:
            if nparams >= 3:
                result = cast(CommandHandler3, handler)(app, args, emit)
            else:
                result = cast(CommandHandler2, handler)(app, args)
            if inspect.isawaitable(result):
                result = await result
        except TasklogError as e:
            logger.debug("Command /%s rejected: %s", name, e)
            return f"Error: {e}"
        return cast(str, result)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- helpers ----


def _day(app: AppState) -> str:
    return app.tracking.selected_day or day_key(app.clock.now())


def _ordered(app: AppState, day: str | None = None) -> list[Task]:
    return sorted(app.tracking.tasks_for(day or _day(app)), key=lambda t: t.order)


def _resolve_task(app: AppState, ref: str) -> Task:
    """Accept a task id or a 1-based position in the selected day's list."""
    found = app.tracking.find_task(ref)
    if found is not None:
        return found[1]
    if ref.isdigit():
        tasks = _ordered(app)
        pos = int(ref)
        if 1 <= pos <= len(tasks):
            return tasks[pos - 1]
    raise ValidationError(f"Unknown task: {ref}")


def _index(raw: str) -> int:
    """1-based index from the user -> 0-based."""
    try:
        value = int(raw)
    except ValueError:
        raise ValidationError(f"Not a number: {raw}") from None
    return value - 1


def _require_login(app: AppState) -> str | None:
    if app.user_id is None:
        return "Not logged in. Use /login <user>."
    return None


def _task_line(app: AppState, pos: int, task: Task, now: float) -> str:
    running = " [running]" if app.tracking.active_task_id == task.id else ""
    line = f"{pos}. {task.name} ({task.id}) {format_duration(task.actual_time(now))}{running}"
    if task.estimated_time:
        line += f" / est {format_duration(task.estimated_time)}"
    return line


# ---- commands ----


def cmd_help(app: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    return registry.build_help()


def cmd_status(app: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    now = app.clock.now()
    active = app.tracking.active_task_id
    running = "none"
    if active is not None:
        found = app.tracking.find_task(active)
        name = found[1].name if found else active
        running = f"{name} ({format_duration(app.tracker.elapsed(now))})"

    sync = app.sync
    remote = "n/a"
    if sync is not None:
        remote = "available" if sync.remote_available else "no document yet"
        if sync.write_failures:
            remote += f", {sync.write_failures} failed write(s)"

    return (
        "Status:\n"
        f"  User: {app.user_id or '(logged out)'}\n"
        f"  Day: {_day(app)}\n"
        f"  Running: {running}\n"
        f"  Remote: {remote}\n"
        f"  Calendar: {'connected' if app.calendar_connected else 'not connected'}"
    )


async def cmd_add(app: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /add <name>"
    task = await api.add_task(app, " ".join(args))
    return f"Added {task.name} ({task.id})."


def cmd_list(app: AppState, args: list[str]) -> str:
    day = args[0] if args else _day(app)
    parse_day_key(day)
    tasks = _ordered(app, day)
    if not tasks:
        return f"No tasks for {day}."
    now = app.clock.now()
    lines = [f"Tasks for {day}:"]
    for pos, task in enumerate(tasks, start=1):
        lines.append(_task_line(app, pos, task, now))
    return "\n".join(lines)


async def cmd_start(app: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /start <task>"
    task = _resolve_task(app, args[0])
    if not await api.start_task(app, task.id):
        return f"{task.name} is already running."
    return f"Started {task.name}."


async def cmd_stop(app: AppState, args: list[str]) -> str:
    task_id = args[0] if args else app.tracking.active_task_id
    if task_id is None:
        return "Nothing is running."
    task = _resolve_task(app, task_id)
    await api.stop_task(app, task.id)
    return f"Stopped {task.name} ({format_duration(task.total_time)} total)."


async def cmd_toggle(app: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /toggle <task>"
    task = _resolve_task(app, args[0])
    running = await api.toggle_task(app, task.id)
    return f"{'Started' if running else 'Stopped'} {task.name}."


async def cmd_delete(app: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /delete <task>"
    task = await api.delete_task(app, _resolve_task(app, args[0]).id)
    return f"Deleted {task.name}."


async def cmd_clear(app: AppState, args: list[str]) -> str:
    removed = await api.clear_day(app)
    return f"Removed {removed} task(s) from {_day(app)}."


async def cmd_reset(app: AppState, args: list[str]) -> str:
    removed = await api.reset_day(app)
    return f"Removed {removed} session(s) from {_day(app)}."


def cmd_sessions(app: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /sessions <task>"
    task = _resolve_task(app, args[0])
    if not task.sessions:
        return f"{task.name} has no sessions."
    lines = [f"Sessions of {task.name}:"]
    for i, s in enumerate(task.sessions, start=1):
        end = format_hhmm(s.end) if s.end is not None else "running"
        lines.append(f"  {i}. {format_hhmm(s.start)} - {end}")
    return "\n".join(lines)


async def cmd_edit(app: AppState, args: list[str]) -> str:
    """
    /edit <task> <n> <HH:MM> <HH:MM>  -> change a closed session on the selected day
    """
    if len(args) != 4:
        return "Usage: /edit <task> <session#> <HH:MM> <HH:MM>"
    task = _resolve_task(app, args[0])
    await api.edit_session(app, task.id, _index(args[1]), args[2], args[3])
    return f"Session updated ({format_duration(task.total_time)} total)."


async def cmd_rmsession(app: AppState, args: list[str]) -> str:
    if len(args) != 2:
        return "Usage: /rmsession <task> <session#>"
    task = _resolve_task(app, args[0])
    await api.delete_session(app, task.id, _index(args[1]))
    return f"Session removed ({format_duration(task.total_time)} total)."


async def cmd_import(app: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    day = args[0] if args else _day(app)
    parse_day_key(day)
    if emit:
        emit(f"[calendar] Fetching events for {day}...")
    try:
        result = await api.import_calendar_day(app, day)
    except AuthExpired:
        return "Calendar authorization expired. Set a new token with /token <token>."
    except CalendarError as e:
        return f"Calendar import failed: {e}"
    return f"Imported {day}: {len(result.added)} new, {len(result.updated)} updated."


def cmd_token(app: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /token <bearer token>"
    app.calendar_token = args[0]
    return "Calendar token set."


def cmd_goals(app: AppState, args: list[str]) -> str:
    day = _day(app)
    goals = goals_for(app.tracking, day)
    lines = [f"Goals for {day}:"]
    for q in Quadrant:
        lines.append(f"  {q.prefix}:")
        for i, g in enumerate(goals.quadrant(q), start=1):
            lines.append(f"    {i}. {g.text or '-'} ({g.achievement_rate}%)")
    return "\n".join(lines)


async def cmd_goal(app: AppState, args: list[str]) -> str:
    """
    /goal q1 2 Ship the report     -> set text
    /goal q1 2 %80                 -> set achievement rate
    """
    if len(args) < 3:
        return "Usage: /goal <q1|q2> <1-3> <text> | /goal <q1|q2> <1-3> %<rate>"
    quadrant, index, rest = args[0], _index(args[1]), args[2:]
    if len(rest) == 1 and rest[0].startswith("%"):
        try:
            rate = float(rest[0][1:])
        except ValueError:
            return f"Not a rate: {rest[0]}"
        goal = await api.update_goal(app, quadrant, index, rate=rate)
    else:
        goal = await api.update_goal(app, quadrant, index, text=" ".join(rest))
    return f"Goal {goal.id}: {goal.text or '-'} ({goal.achievement_rate}%)"


async def cmd_copygoals(app: AppState, args: list[str]) -> str:
    if not await api.copy_previous_day_goals(app):
        return "No goals recorded for the previous day."
    return f"Copied goals into {_day(app)}."


async def cmd_day(app: AppState, args: list[str]) -> str:
    """
    /day              -> show selected day
    /day 2024-05-01   -> select a day
    /day +1 | /day -1 -> move relative to the selected day
    /day today
    """
    if not args:
        return f"Selected day: {_day(app)}"
    arg = args[0].lower()
    if arg == "today":
        day = day_key(app.clock.now())
    elif arg[:1] in "+-" and arg[1:].isdigit():
        day = shift_day(_day(app), int(arg))
    else:
        parse_day_key(arg)
        day = arg
    await api.select_day(app, day)
    return f"Selected day: {day}"


def cmd_layout(app: AppState, args: list[str]) -> str:
    day = _day(app)
    tasks = _ordered(app, day)
    blocks = scheduled_blocks(tasks, day)
    if not blocks:
        return f"Nothing scheduled for {day}."
    columns = assign_columns(blocks)
    names = {t.id: t.name for t in tasks}
    lines = [f"Schedule for {day}:"]
    for b in sorted(blocks, key=lambda x: x.start):
        lines.append(f"  [{columns[b.task_id] + 1}] {format_hhmm(b.start)}-{format_hhmm(b.end)} {names.get(b.task_id, b.task_id)}")
    return "\n".join(lines)


async def cmd_login(app: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /login <user>"
    await lifecycle.login(app, args[0])
    return f"Logged in as {app.user_id}."


async def cmd_logout(app: AppState, args: list[str]) -> str:
    if (msg := _require_login(app)) is not None:
        return msg
    await lifecycle.logout(app)
    return "Logged out."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show user, running task and sync status.")
registry.register("add", cmd_add, help_text="Add a task to the selected day: /add <name>.")
registry.register("list", cmd_list, help_text="List tasks: /list [YYYY-MM-DD].", aliases=["ls"])
registry.register("start", cmd_start, help_text="Start a task (stops the running one): /start <task>.")
registry.register("stop", cmd_stop, help_text="Stop a task (default: the running one): /stop [task].")
registry.register("toggle", cmd_toggle, help_text="Start or stop a task: /toggle <task>.", aliases=["t"])
registry.register("delete", cmd_delete, help_text="Delete a task: /delete <task>.", aliases=["rm"])
registry.register("clear", cmd_clear, help_text="Remove every task of the selected day.")
registry.register("reset", cmd_reset, help_text="Drop the recorded time of the selected day.")
registry.register("sessions", cmd_sessions, help_text="Show a task's sessions: /sessions <task>.")
registry.register("edit", cmd_edit, help_text="Edit a session: /edit <task> <n> <HH:MM> <HH:MM>.")
registry.register("rmsession", cmd_rmsession, help_text="Delete a session: /rmsession <task> <n>.")
registry.register("import", cmd_import, help_text="Import calendar events: /import [YYYY-MM-DD].")
registry.register("token", cmd_token, help_text="Set the calendar bearer token: /token <token>.")
registry.register("goals", cmd_goals, help_text="Show the selected day's goals.")
registry.register("goal", cmd_goal, help_text="Edit a goal: /goal <q1|q2> <1-3> <text|%rate>.")
registry.register("copygoals", cmd_copygoals, help_text="Copy goals from the previous day.")
registry.register("day", cmd_day, help_text="Select a day: /day [YYYY-MM-DD|today|+N|-N].")
registry.register("layout", cmd_layout, help_text="Show the selected day's scheduled blocks.")
registry.register("login", cmd_login, help_text="Log in: /login <user>.")
registry.register("logout", cmd_logout, help_text="Write the final snapshot and log out.")
