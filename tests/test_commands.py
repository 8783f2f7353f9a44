# tests/test_commands.py

from __future__ import annotations

import pytest

from tasklog.cli.commands import CommandRegistry, registry

from .conftest import DAY


@pytest.mark.asyncio
async def test_command_registry_routes_2_and_3_params(state) -> None:
    reg = CommandRegistry()
    called = {"h2": 0, "h3": 0}

    def h2(state, args):
        called["h2"] += 1
        return "h2"

    async def h3(state, args, emit):
        called["h3"] += 1
        if emit is not None:
            emit("note")
        return "h3"

    reg.register("a", h2, "a")
    reg.register("b", h3, "b")

    assert await reg.handle(state, "/a x") == "h2"
    assert await reg.handle(state, "/b y", emit=lambda _: None) == "h3"
    assert called["h2"] == 1
    assert called["h3"] == 1


@pytest.mark.asyncio
async def test_command_registry_unknown_and_non_command(state) -> None:
    reg = CommandRegistry()
    assert await reg.handle(state, "hello") is None
    assert "Unknown command" in (await reg.handle(state, "/nope") or "")


@pytest.mark.asyncio
async def test_tracker_errors_become_replies(state) -> None:
    reply = await registry.handle(state, "/start nope")
    assert reply is not None and reply.startswith("Error:")


@pytest.mark.asyncio
async def test_add_start_list_by_position(state, clock) -> None:
    await registry.handle(state, "/add Write report")
    await registry.handle(state, "/start 1")
    clock.advance(65)

    listing = await registry.handle(state, "/list") or ""
    assert "Write report" in listing
    assert "00:01:05" in listing
    assert "[running]" in listing

    reply = await registry.handle(state, "/stop") or ""
    assert reply.startswith("Stopped Write report")
    assert state.tracking.active_task_id is None


@pytest.mark.asyncio
async def test_goal_and_day_commands(state) -> None:
    await registry.handle(state, "/goal q1 1 Ship it")
    await registry.handle(state, "/goal q1 1 %75")
    goals = await registry.handle(state, "/goals") or ""
    assert "Ship it (75%)" in goals

    assert await registry.handle(state, "/day +1") == "Selected day: 2024-05-02"
    assert (await registry.handle(state, "/copygoals") or "").startswith("Copied goals")
    assert await registry.handle(state, "/day today") == f"Selected day: {DAY}"

    bad = await registry.handle(state, "/day tomorrow") or ""
    assert bad.startswith("Error:")
