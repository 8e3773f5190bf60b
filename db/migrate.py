from __future__ import annotations

import hashlib
import importlib.util
import re
import sqlite3
from datetime import datetime, timezone
from pathlib import Path


MIGRATION_RE = re.compile(r"^(\d{4})_([a-zA-Z0-9_]+)\.(sql|py)$")


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _checksum_file(path: Path) -> str:
    return hashlib.sha256(path.read_bytes()).hexdigest()


def _ensure_migration_table(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS schema_migrations (
            version TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            checksum TEXT NOT NULL,
            applied_at_utc TEXT NOT NULL
        )
        """
    )
    conn.commit()


def _load_applied(conn: sqlite3.Connection) -> dict[str, tuple[str, str]]:
    rows = conn.execute("SELECT version, name, checksum FROM schema_migrations").fetchall()
    return {str(version): (str(name), str(checksum)) for version, name, checksum in rows}


def _discover(migrations_dir: str) -> list[tuple[str, str, str, Path]]:
    base = Path(migrations_dir)
    if not base.exists():
        raise RuntimeError(f"Migrations directory not found: {migrations_dir}")
    found: list[tuple[str, str, str, Path]] = []
    for p in sorted(base.iterdir()):
        m = MIGRATION_RE.match(p.name) if p.is_file() else None
        if m:
            found.append((m.group(1), m.group(2), m.group(3), p))
    return found


def _run_py(conn: sqlite3.Connection, path: Path) -> None:
    spec = importlib.util.spec_from_file_location(f"scheduler_migration_{path.stem}", str(path))
    if spec is None or spec.loader is None:
        raise RuntimeError(f"Could not load migration module: {path}")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    upgrade = getattr(module, "upgrade", None)
    if not callable(upgrade):
        raise RuntimeError(f"Python migration missing upgrade(conn): {path}")
    upgrade(conn)


def apply_sqlite_migrations(conn: sqlite3.Connection, migrations_dir: str) -> list[str]:
    """Apply pending migrations in version order and return the versions applied this call."""
    _ensure_migration_table(conn)
    applied = _load_applied(conn)
    newly_applied: list[str] = []

    for version, name, ext, path in _discover(migrations_dir):
        checksum = _checksum_file(path)
        existing = applied.get(version)
        if existing:
            if existing != (name, checksum):
                raise RuntimeError(
                    f"Migration version {version} already applied with different content "
                    f"(existing name={existing[0]}, file name={name})."
                )
            continue

        print(f"[DB] Applying migration {version}_{name}.{ext}")
        if ext == "sql":
            conn.executescript(path.read_text(encoding="utf-8"))
        else:
            _run_py(conn, path)

        conn.execute(
            "INSERT INTO schema_migrations (version, name, checksum, applied_at_utc) VALUES (?, ?, ?, ?)",
            (version, name, checksum, _utc_now_iso()),
        )
        conn.commit()
        newly_applied.append(version)

    return newly_applied


def open_sqlite(db_path: str, migrations_dir: str) -> sqlite3.Connection:
    # check_same_thread=False because the event loop hands the connection to to_thread workers
    conn = sqlite3.connect(db_path, check_same_thread=False)
    if db_path != ":memory:":
        conn.execute("PRAGMA journal_mode=WAL;")
        conn.execute("PRAGMA synchronous=NORMAL;")
    apply_sqlite_migrations(conn, migrations_dir)
    return conn
