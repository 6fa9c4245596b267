"""
Logging setup shared by the three processes.

Everything goes to stdout (the process supervisor captures it) and is
mirrored into the bot_logs table so `wa-assistant logs` can show all three
processes in one place. Records from the "lifecycle" logger are operator
events (started, session resumed, alert sent) and are stored as level
"action"; they also go to data/lifecycle.log.
"""
from __future__ import annotations

import logging
import sqlite3
import sys
from pathlib import Path
from typing import Optional

from wa_assistant.common import from_ms, now_ms
from wa_assistant.db import Database

LOG_FORMAT = '%(asctime)s | %(levelname)s | %(message)s'
LIFECYCLE_FORMAT = '%(asctime)s | %(message)s'

MAX_LOG_ROWS = 1000
PRUNE_EVERY = 100

SOURCES = ("bridge", "processor", "heartbeat", "system")


class DatabaseLogHandler(logging.Handler):
    """Append log records to bot_logs, pruning to the newest rows now and then."""

    def __init__(self, db: Database, source: str, level: int = logging.INFO):
        super().__init__(level)
        self.db = db
        self.source = source
        self._inserts = 0

    @staticmethod
    def db_level(record: logging.LogRecord) -> str:
        if record.name == "lifecycle":
            return "action"
        if record.levelno >= logging.ERROR:
            return "error"
        if record.levelno >= logging.WARNING:
            return "warn"
        return "info"

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = record.getMessage()
            with self.db.connect() as conn:
                conn.execute(
                    "INSERT INTO bot_logs (level, source, message, created_at) VALUES (?, ?, ?, ?)",
                    (self.db_level(record), self.source, message, now_ms()),
                )
                self._inserts += 1
                if self._inserts % PRUNE_EVERY == 0:
                    conn.execute(
                        "DELETE FROM bot_logs WHERE id NOT IN "
                        "(SELECT id FROM bot_logs ORDER BY id DESC LIMIT ?)",
                        (MAX_LOG_ROWS,),
                    )
        except (sqlite3.Error, OSError):
            self.handleError(record)


def setup_logging(source: str, db: Optional[Database] = None,
                  lifecycle_file: Optional[Path] = None, level: int = logging.INFO) -> None:
    """Configure root + lifecycle loggers for one process."""
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    if db is not None:
        logging.getLogger().addHandler(DatabaseLogHandler(db, source))

    lifecycle_log = logging.getLogger("lifecycle")
    lifecycle_log.setLevel(logging.INFO)
    if lifecycle_file is not None:
        lifecycle_file.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(lifecycle_file)
        handler.setFormatter(logging.Formatter(LIFECYCLE_FORMAT))
        lifecycle_log.addHandler(handler)

    # Chatty HTTP client logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def recent_logs(db: Database, limit: int = 50, source: Optional[str] = None) -> list[dict]:
    """Newest log rows, returned oldest first."""
    query = "SELECT * FROM bot_logs"
    params: list = []
    if source:
        query += " WHERE source = ?"
        params.append(source)
    query += " ORDER BY id DESC LIMIT ?"
    params.append(limit)

    with db.connect() as conn:
        rows = conn.execute(query, params).fetchall()
    return [
        {
            "id": row["id"],
            "level": row["level"],
            "source": row["source"],
            "message": row["message"],
            "created_at": from_ms(row["created_at"]),
        }
        for row in reversed(rows)
    ]
