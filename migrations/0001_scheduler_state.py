from __future__ import annotations

import sqlite3


def upgrade(conn: sqlite3.Connection) -> None:
    cur = conn.cursor()
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS actor_fields (
            actor_key TEXT NOT NULL,
            field TEXT NOT NULL,
            value_json TEXT NOT NULL,
            updated_at_utc TEXT NOT NULL,
            PRIMARY KEY (actor_key, field)
        )
        """
    )
    # One row per actor: arming replaces, it never stacks.
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS actor_alarms (
            actor_key TEXT PRIMARY KEY,
            fire_at_ms INTEGER NOT NULL,
            armed_at_utc TEXT NOT NULL
        )
        """
    )
    cur.execute("CREATE INDEX IF NOT EXISTS idx_actor_alarms_fire_at ON actor_alarms(fire_at_ms)")
    conn.commit()
