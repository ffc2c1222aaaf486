"""SQLite connection helpers for backend persistence."""

from __future__ import annotations

import sqlite3

BUSY_TIMEOUT_SECONDS = 5.0


def create_sqlite_connection(path: str) -> sqlite3.Connection:
    """Create a SQLite connection that waits on writer locks instead of failing fast."""
    conn = sqlite3.connect(path, timeout=BUSY_TIMEOUT_SECONDS)
    conn.execute("PRAGMA journal_mode=WAL")
    return conn
