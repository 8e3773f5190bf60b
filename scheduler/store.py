from __future__ import annotations

import asyncio
import json
import sqlite3
from datetime import datetime, timezone
from typing import Any, Iterable


QUEUE_FIELD = "queue"
MEMOS_FIELD = "memos"

# Sentinel for "leave the armed alarm as it is".
KEEP_ALARM = object()


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _loads(raw: str | None) -> Any:
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except (TypeError, ValueError):
        return None


def get_field_sync(conn: sqlite3.Connection, actor_key: str, field: str) -> Any:
    cur = conn.cursor()
    cur.execute(
        "SELECT value_json FROM actor_fields WHERE actor_key = ? AND field = ? LIMIT 1",
        (actor_key, field),
    )
    row = cur.fetchone()
    return _loads(row[0]) if row else None


def get_alarm_sync(conn: sqlite3.Connection, actor_key: str) -> int | None:
    cur = conn.cursor()
    cur.execute("SELECT fire_at_ms FROM actor_alarms WHERE actor_key = ? LIMIT 1", (actor_key,))
    row = cur.fetchone()
    return int(row[0]) if row else None


def commit_batch_sync(
    conn: sqlite3.Connection,
    actor_key: str,
    *,
    put: dict[str, Any] | None = None,
    delete: Iterable[str] = (),
    alarm_at: Any = KEEP_ALARM,
) -> None:
    """
    Write one actor's mutations as a single transaction.

    alarm_at: KEEP_ALARM leaves the alarm alone, None cancels it, an int (epoch ms)
    arms it, replacing any earlier deadline.
    """
    now = _utc_now_iso()
    cur = conn.cursor()
    try:
        for field, value in (put or {}).items():
            cur.execute(
                """
                INSERT INTO actor_fields (actor_key, field, value_json, updated_at_utc)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(actor_key, field) DO UPDATE SET
                    value_json = excluded.value_json,
                    updated_at_utc = excluded.updated_at_utc
                """,
                (actor_key, field, json.dumps(value, ensure_ascii=False), now),
            )
        for field in delete:
            cur.execute("DELETE FROM actor_fields WHERE actor_key = ? AND field = ?", (actor_key, field))
        if alarm_at is None:
            cur.execute("DELETE FROM actor_alarms WHERE actor_key = ?", (actor_key,))
        elif alarm_at is not KEEP_ALARM:
            cur.execute(
                """
                INSERT INTO actor_alarms (actor_key, fire_at_ms, armed_at_utc)
                VALUES (?, ?, ?)
                ON CONFLICT(actor_key) DO UPDATE SET
                    fire_at_ms = excluded.fire_at_ms,
                    armed_at_utc = excluded.armed_at_utc
                """,
                (actor_key, int(alarm_at), now),
            )
        conn.commit()
    except Exception:
        conn.rollback()
        raise


def list_due_alarms_sync(conn: sqlite3.Connection, now_ms: int, limit: int = 100) -> list[tuple[str, int]]:
    cur = conn.cursor()
    cur.execute(
        """
        SELECT actor_key, fire_at_ms
        FROM actor_alarms
        WHERE fire_at_ms <= ?
        ORDER BY fire_at_ms ASC
        LIMIT ?
        """,
        (int(now_ms), max(1, int(limit))),
    )
    return [(str(key), int(fire_at)) for key, fire_at in cur.fetchall()]


def next_alarm_at_sync(conn: sqlite3.Connection) -> int | None:
    cur = conn.cursor()
    cur.execute("SELECT MIN(fire_at_ms) FROM actor_alarms")
    row = cur.fetchone()
    return int(row[0]) if row and row[0] is not None else None


class ActorStorage:
    """Durable field store and single-slot alarm for one actor key."""

    def __init__(self, *, db_lock, db_conn, actor_key: str) -> None:
        self.db_lock = db_lock
        self.db_conn = db_conn
        self.actor_key = actor_key

    async def get(self, field: str) -> Any:
        async with self.db_lock:
            return await asyncio.to_thread(get_field_sync, self.db_conn, self.actor_key, field)

    async def get_alarm(self) -> int | None:
        async with self.db_lock:
            return await asyncio.to_thread(get_alarm_sync, self.db_conn, self.actor_key)

    async def commit(
        self,
        *,
        put: dict[str, Any] | None = None,
        delete: Iterable[str] = (),
        alarm_at: Any = KEEP_ALARM,
    ) -> None:
        async with self.db_lock:
            await asyncio.to_thread(
                commit_batch_sync,
                self.db_conn,
                self.actor_key,
                put=put,
                delete=tuple(delete),
                alarm_at=alarm_at,
            )
