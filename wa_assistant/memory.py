"""
User memory: key/value facts the assistant keeps about the owner.

At most one active fact per key. Deleting flips is_active off; rows are
never removed, so the history of a key stays in the table.
"""
from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from wa_assistant import directives
from wa_assistant.common import from_ms, now_ms
from wa_assistant.db import Database
from wa_assistant.directives import MemoryDirective

log = logging.getLogger(__name__)

DEFAULT_CATEGORY = "fact"


@dataclass
class MemoryFact:
    id: int
    category: str
    key: str
    value: str
    source: str
    is_active: bool
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "MemoryFact":
        return cls(
            id=row["id"],
            category=row["category"],
            key=row["key"],
            value=row["value"],
            source=row["source"],
            is_active=bool(row["is_active"]),
            created_at=from_ms(row["created_at"]),
            updated_at=from_ms(row["updated_at"]),
        )


class MemoryStore:
    def __init__(self, db: Database):
        self.db = db

    def list_active(self) -> list[MemoryFact]:
        """Active facts ordered by category, then key."""
        with self.db.connect() as conn:
            rows = conn.execute(
                "SELECT * FROM user_memory WHERE is_active = 1 ORDER BY category, key"
            ).fetchall()
        return [MemoryFact.from_row(row) for row in rows]

    def get_active(self, key: str) -> Optional[MemoryFact]:
        with self.db.connect() as conn:
            row = conn.execute(
                "SELECT * FROM user_memory WHERE key = ? AND is_active = 1", (key,)
            ).fetchone()
        return MemoryFact.from_row(row) if row else None

    def save(self, key: str, value: str, category: Optional[str] = None,
             source: str = "inferred") -> int:
        """Upsert the active fact for key. Returns the row id.

        An existing active fact is updated in place (same id); its category is
        kept unless a new one is given.
        """
        ts = now_ms()
        with self.db.transaction() as conn:
            row = conn.execute(
                "SELECT id FROM user_memory WHERE key = ? AND is_active = 1", (key,)
            ).fetchone()
            if row:
                conn.execute(
                    """
                    UPDATE user_memory
                    SET value = ?, category = COALESCE(?, category), updated_at = ?
                    WHERE id = ?
                    """,
                    (value, category, ts, row["id"]),
                )
                return row["id"]
            cursor = conn.execute(
                """
                INSERT INTO user_memory (category, key, value, source, is_active, created_at, updated_at)
                VALUES (?, ?, ?, ?, 1, ?, ?)
                """,
                (category or DEFAULT_CATEGORY, key, value, source, ts, ts),
            )
            return cursor.lastrowid

    def forget(self, key: str) -> bool:
        """Soft-delete the active fact for key. Returns False if there was none."""
        with self.db.connect() as conn:
            cursor = conn.execute(
                "UPDATE user_memory SET is_active = 0, updated_at = ? WHERE key = ? AND is_active = 1",
                (now_ms(), key),
            )
            return cursor.rowcount > 0

    def apply_directives(self, text: str) -> str:
        """Apply memory_update blocks in text and return the text without them."""
        found = directives.scan(text, directives.MEMORY_TAG, MemoryDirective)
        for directive in found:
            if not directive.ok:
                continue
            payload = directive.payload
            if payload.action == "save":
                if payload.value is None:
                    log.warning(f"memory_update save without value for key '{payload.key}', skipped")
                    continue
                self.save(payload.key, payload.value, payload.category)
                log.info(f"Memory saved: {payload.key} = {payload.value}")
            else:
                if self.forget(payload.key):
                    log.info(f"Memory deleted: {payload.key}")
                else:
                    log.info(f"Memory delete for unknown key: {payload.key}")
        return directives.strip_blocks(text, found)
