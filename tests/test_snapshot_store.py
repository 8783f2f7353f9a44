# tests/test_snapshot_store.py

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from tasklog.core.errors import PersistenceFailure
from tasklog.storage.snapshot_store import SQLiteSnapshotStore, deep_merge


def test_deep_merge_merges_mappings_and_replaces_lists() -> None:
    base = {"tasksByDate": {"d1": [1], "d2": [2]}, "tasks": [9], "x": 1}
    update = {"tasksByDate": {"d2": [3]}, "tasks": []}

    out = deep_merge(base, update)

    assert out == {"tasksByDate": {"d1": [1], "d2": [3]}, "tasks": [], "x": 1}
    assert base["tasksByDate"]["d2"] == [2]


@pytest.mark.asyncio
async def test_put_merges_into_existing_document(tmp_path: Path) -> None:
    store = SQLiteSnapshotStore(tmp_path / "snap.sqlite3")

    await store.put("u1", {"tasksByDate": {"2024-05-01": [{"id": "a"}]}, "activeTaskId": "a"})
    await store.put("u1", {"tasksByDate": {"2024-05-02": []}, "activeTaskId": None})

    doc = await store.get("u1")
    assert doc is not None
    assert set(doc["tasksByDate"]) == {"2024-05-01", "2024-05-02"}
    assert doc["activeTaskId"] is None
    assert "updatedAt" in doc
    assert await store.get("nobody") is None
    assert store.count_users() == 1


@pytest.mark.asyncio
async def test_put_without_merge_replaces_document(tmp_path: Path) -> None:
    store = SQLiteSnapshotStore(tmp_path / "snap.sqlite3")
    await store.put("u1", {"a": 1})
    await store.put("u1", {"b": 2}, merge=False)

    doc = await store.get("u1")
    assert doc is not None
    assert "a" not in doc
    assert doc["b"] == 2


@pytest.mark.asyncio
async def test_put_requires_user_id(tmp_path: Path) -> None:
    store = SQLiteSnapshotStore(tmp_path / "snap.sqlite3")
    with pytest.raises(PersistenceFailure):
        await store.put("", {"a": 1})


@pytest.mark.asyncio
async def test_subscribe_delivers_current_then_changes(tmp_path: Path) -> None:
    store = SQLiteSnapshotStore(tmp_path / "snap.sqlite3")
    got: list[dict | None] = []

    unsubscribe = store.subscribe("u1", got.append)
    await asyncio.sleep(0)
    assert got == [None]

    await store.put("u1", {"tasksDate": "2024-05-01"})
    await asyncio.sleep(0)
    assert len(got) == 2
    assert got[1] is not None and got[1]["tasksDate"] == "2024-05-01"

    unsubscribe()
    await store.put("u1", {"tasksDate": "2024-05-02"})
    await asyncio.sleep(0)
    assert len(got) == 2


@pytest.mark.asyncio
async def test_listener_failure_does_not_break_put(tmp_path: Path) -> None:
    store = SQLiteSnapshotStore(tmp_path / "snap.sqlite3")
    ok: list[dict | None] = []

    def bad(payload) -> None:
        raise RuntimeError("listener bug")

    store.subscribe("u1", bad)
    store.subscribe("u1", ok.append)
    await store.put("u1", {"x": 1})
    await asyncio.sleep(0)

    assert ok[-1] is not None and ok[-1]["x"] == 1
