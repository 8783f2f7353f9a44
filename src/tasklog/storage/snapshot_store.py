# src/tasklog/storage/snapshot_store.py

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import sqlite3
import time
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from ..core.errors import PersistenceFailure
from ..core.ports import SnapshotListener, SnapshotPayload, Unsubscribe

logger = logging.getLogger(__name__)


def deep_merge(base: Mapping[str, Any], update: Mapping[str, Any]) -> dict[str, Any]:
    """
    Merge `update` into a copy of `base`.

    Nested mappings are merged key by key; every other value (lists included)
    replaces what was there.
    """
    out = dict(base)
    for key, value in update.items():
        prev = out.get(key)
        if isinstance(prev, Mapping) and isinstance(value, Mapping):
            out[key] = deep_merge(prev, value)
        else:
            out[key] = value
    return out


class SQLiteSnapshotStore:
    """
    SQLite snapshot store: one JSON document per user, with push listeners.

    The schema is intentionally simple and migration-safe:
    - create table if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Listeners are notified after every put (the writer's own echo included) and
    once right after subscribe. Notifications are scheduled with loop.call_soon
    when an event loop is running, so a write never re-enters a listener
    synchronously.
    """

    def __init__(self, db_path: str | Path = "snapshots.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._listeners: dict[str, list[SnapshotListener]] = {}
        self._ensure_schema()
        try:
            total = self.count_users()
        except Exception:
            total = -1
        logger.info("SnapshotStore ready db=%s users=%s", self._db_path, total)

    def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        self._listeners.clear()

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(Exception):
            conn.execute("PRAGMA journal_mode=WAL")

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS snapshots (
                    user_id TEXT PRIMARY KEY,
                    payload TEXT NOT NULL DEFAULT '{}',
                    updated_at REAL NOT NULL
                )
                """
            )

            cur.execute("PRAGMA table_info(snapshots)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE snapshots ADD COLUMN {name} {decl}")
                logger.info("SnapshotStore migration: added column %s", name)

            add_col("payload", "TEXT NOT NULL DEFAULT '{}'")
            add_col("updated_at", "REAL NOT NULL DEFAULT 0")

            conn.commit()
        finally:
            conn.close()

    def _read(self, user_id: str) -> SnapshotPayload | None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT payload FROM snapshots WHERE user_id = ?", (user_id,))
            row = cur.fetchone()
        finally:
            conn.close()
        if row is None:
            return None
        val = json.loads(row["payload"] or "{}")
        return val if isinstance(val, dict) else None

    def _write(self, user_id: str, snapshot: SnapshotPayload, merge: bool) -> SnapshotPayload:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT payload FROM snapshots WHERE user_id = ?", (user_id,))
            row = cur.fetchone()
            current: dict[str, Any] = {}
            if row is not None and merge:
                try:
                    loaded = json.loads(row["payload"] or "{}")
                    current = loaded if isinstance(loaded, dict) else {}
                except ValueError:
                    logger.warning("Stored snapshot for user=%s is not valid JSON; overwriting", user_id)

            now = time.time()
            doc = deep_merge(current, snapshot) if merge else dict(snapshot)
            doc["updatedAt"] = now
            cur.execute(
                """
                INSERT INTO snapshots(user_id, payload, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(user_id) DO UPDATE SET payload = excluded.payload,
                                                   updated_at = excluded.updated_at
                """,
                (user_id, json.dumps(doc, ensure_ascii=False), now),
            )
            conn.commit()
            return doc
        finally:
            conn.close()

    def _notify(self, user_id: str, payload: SnapshotPayload | None, listeners: list[SnapshotListener]) -> None:
        def deliver() -> None:
            for cb in listeners:
                try:
                    cb(payload)
                except Exception:
                    logger.exception("Snapshot listener failed user=%s", user_id)

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            deliver()
            return
        loop.call_soon(deliver)

    # ---- public API ----

    def count_users(self) -> int:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT COUNT(*) FROM snapshots")
            (n,) = cur.fetchone()
            return int(n)
        finally:
            conn.close()

    async def get(self, user_id: str) -> SnapshotPayload | None:
        try:
            return self._read(user_id)
        except (sqlite3.Error, ValueError) as e:
            raise PersistenceFailure(f"Snapshot read failed for user={user_id}") from e

    async def put(self, user_id: str, snapshot: SnapshotPayload, *, merge: bool = True) -> None:
        if not user_id:
            raise PersistenceFailure("user_id is required")
        try:
            doc = self._write(user_id, snapshot, merge)
        except (sqlite3.Error, TypeError, ValueError) as e:
            raise PersistenceFailure(f"Snapshot write failed for user={user_id}") from e
        logger.debug("Snapshot stored user=%s days=%d", user_id, len(doc.get("tasksByDate") or {}))

        listeners = list(self._listeners.get(user_id, []))
        if listeners:
            self._notify(user_id, doc, listeners)

    def subscribe(self, user_id: str, on_change: SnapshotListener) -> Unsubscribe:
        self._listeners.setdefault(user_id, []).append(on_change)

        try:
            current = self._read(user_id)
        except (sqlite3.Error, ValueError):
            logger.exception("Initial snapshot read failed user=%s", user_id)
            current = None
        self._notify(user_id, current, [on_change])

        def unsubscribe() -> None:
            listeners = self._listeners.get(user_id, [])
            with contextlib.suppress(ValueError):
                listeners.remove(on_change)
            if not listeners:
                self._listeners.pop(user_id, None)

        return unsubscribe
