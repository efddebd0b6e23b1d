from __future__ import annotations

import sqlite3
from pathlib import Path

MIGRATIONS_DIR = Path(__file__).parent / "migrations"


def connect_sqlite(path: str | Path = ":memory:") -> sqlite3.Connection:
    conn = sqlite3.connect(path, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


def apply_sqlite_migration(conn: sqlite3.Connection, migration_path: str | Path) -> None:
    sql = Path(migration_path).read_text(encoding="utf-8")
    conn.executescript(sql)


def initialize(path: str | Path = ":memory:") -> sqlite3.Connection:
    """Open the ledger database and bring its schema up to date."""
    conn = connect_sqlite(path)
    for migration in sorted(MIGRATIONS_DIR.glob("*.sql")):
        apply_sqlite_migration(conn, migration)
    return conn
