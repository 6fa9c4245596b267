"""
db.py - SQLite store shared by the bridge, processor and heartbeat.

The three processes never talk to each other directly; every hand-off goes
through these tables. Connections are opened per operation (WAL mode, 5s busy
timeout) so each process, and each thread inside one, gets its own handle.

Usage:
    from wa_assistant.db import Database

    db = Database(settings.db_path)
    with db.connect() as conn:
        conn.execute("SELECT ...")
    with db.transaction() as conn:  # BEGIN IMMEDIATE ... COMMIT
        conn.execute("UPDATE ...")
"""
from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

# Schema version for migrations
SCHEMA_VERSION = 1

SCHEMA = """
CREATE TABLE IF NOT EXISTS message_queue (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    wa_message_id TEXT NOT NULL,
    sender_jid TEXT NOT NULL,
    text TEXT NOT NULL,
    response TEXT,
    status TEXT NOT NULL DEFAULT 'pending',
    session_id TEXT,
    created_at INTEGER,
    completed_at INTEGER,
    sent_at INTEGER
);

CREATE INDEX IF NOT EXISTS idx_message_queue_status
ON message_queue(status, id);

CREATE TABLE IF NOT EXISTS user_memory (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    category TEXT NOT NULL DEFAULT 'fact',
    key TEXT NOT NULL,
    value TEXT NOT NULL,
    source TEXT NOT NULL DEFAULT 'explicit',
    is_active INTEGER NOT NULL DEFAULT 1,
    created_at INTEGER,
    updated_at INTEGER
);

CREATE INDEX IF NOT EXISTS idx_user_memory_key
ON user_memory(key, is_active);

CREATE TABLE IF NOT EXISTS reminders (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    text TEXT NOT NULL,
    due_at INTEGER NOT NULL,
    recurrence TEXT,
    status TEXT NOT NULL DEFAULT 'pending',
    created_at INTEGER
);

CREATE TABLE IF NOT EXISTS outbound_messages (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    target_phone TEXT NOT NULL,
    message TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'pending_approval',
    session_id TEXT,
    created_at INTEGER,
    approved_at INTEGER,
    sent_at INTEGER
);

CREATE TABLE IF NOT EXISTS alert_history (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    dedup_key TEXT NOT NULL,
    type TEXT NOT NULL,
    severity TEXT NOT NULL DEFAULT 'warning',
    message TEXT NOT NULL,
    sent_at INTEGER
);

CREATE INDEX IF NOT EXISTS idx_alert_history_dedup
ON alert_history(dedup_key, sent_at DESC);

CREATE TABLE IF NOT EXISTS pending_summary_items (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    type TEXT NOT NULL,
    message TEXT NOT NULL,
    created_at INTEGER
);

CREATE TABLE IF NOT EXISTS bot_logs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    level TEXT NOT NULL DEFAULT 'info',
    source TEXT NOT NULL DEFAULT 'system',
    message TEXT NOT NULL,
    created_at INTEGER
);

CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);
"""


class Database:
    """Handle on the shared SQLite file. Creates the schema on first use."""

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self._ensure_db()

    def _ensure_db(self):
        """Create database and tables if they don't exist."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        with self.connect() as conn:
            conn.execute("PRAGMA journal_mode = WAL")
            conn.executescript(SCHEMA)
            conn.execute("INSERT OR IGNORE INTO schema_version VALUES (?)", (SCHEMA_VERSION,))

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        """Autocommit connection with row factory; closed on exit."""
        conn = sqlite3.connect(str(self.db_path), timeout=5.0, isolation_level=None)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA busy_timeout = 5000")
        try:
            yield conn
        finally:
            conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Exclusive write transaction: takes the write lock up front."""
        with self.connect() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
