"""
Database connection, initialization and transactions.
"""
from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from gameweek_backend.config import get_config

from .schema import all_schema_sql


def _run_transfer_columns_migration(conn: sqlite3.Connection) -> None:
    """Add transfer tracking columns to fantasy_teams (transfers made, banked, team's gameweek)."""
    cur = conn.execute("PRAGMA table_info(fantasy_teams)")
    cols = [row[1] for row in cur.fetchall()]
    if "transfers_made_this_gw" not in cols:
        conn.execute("ALTER TABLE fantasy_teams ADD COLUMN transfers_made_this_gw INTEGER NOT NULL DEFAULT 0")
    if "transfers_banked" not in cols:
        conn.execute("ALTER TABLE fantasy_teams ADD COLUMN transfers_banked INTEGER NOT NULL DEFAULT 0")
    if "current_gameweek" not in cols:
        conn.execute("ALTER TABLE fantasy_teams ADD COLUMN current_gameweek INTEGER NOT NULL DEFAULT 1")


_db_path: Path | None = None


def set_db_path(path: str | Path) -> None:
    """Set the database path. Call before first get_connection if not using the configured one."""
    global _db_path
    _db_path = Path(path)


def get_db_path() -> Path:
    """Return the current database path."""
    if _db_path is not None:
        return _db_path
    return Path(get_config().db_path)


def get_connection(db_path: str | Path | None = None) -> sqlite3.Connection:
    """
    Return a new SQLite connection.
    Use as context manager or ensure close() is called.
    """
    path = Path(db_path) if db_path else get_db_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    # timeout: concurrent writers wait on BEGIN IMMEDIATE instead of failing straight away
    conn = sqlite3.connect(str(path), timeout=30.0, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def init_db(db_path: str | Path | None = None) -> None:
    """Create or ensure all tables exist."""
    path = Path(db_path) if db_path else get_db_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    try:
        conn.executescript(all_schema_sql())
        _run_transfer_columns_migration(conn)
        conn.commit()
    finally:
        conn.close()


@contextmanager
def transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """
    Run a block as one write transaction (BEGIN IMMEDIATE takes the write lock up front).
    Commits on success, rolls back on any exception.
    Repository calls inside the block must pass commit=False.
    Raises RuntimeError if the connection already has uncommitted work.
    """
    if conn.in_transaction:
        raise RuntimeError("Connection has uncommitted changes; commit or roll back before transaction()")
    conn.execute("BEGIN IMMEDIATE")
    try:
        yield conn
    except BaseException:
        conn.rollback()
        raise
    else:
        conn.commit()
