"""
Durable message queue: the single hand-off point between the three processes.

Item lifecycle:  pending -> processing -> completed | failed

- The bridge enqueues inbound text and delivers completed responses.
- The processor claims one pending item at a time and completes it.
- The heartbeat enqueues pre-filled notifications (already completed).

Delivery is at-most-once: sent_at is stamped before the transport is called,
so a crash mid-send loses the message instead of sending it twice.
"""
from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from wa_assistant.common import SYSTEM_SENDER, from_ms, now_ms, to_ms
from wa_assistant.db import Database

log = logging.getLogger(__name__)

PENDING = "pending"
PROCESSING = "processing"
COMPLETED = "completed"
FAILED = "failed"

STATUSES = (PENDING, PROCESSING, COMPLETED, FAILED)

NOTIFICATION_TEXT = "(system notification)"


@dataclass
class QueueItem:
    id: int
    wa_message_id: str
    sender_jid: str
    text: str
    response: Optional[str]
    status: str
    session_id: Optional[str]
    created_at: Optional[datetime]
    completed_at: Optional[datetime]
    sent_at: Optional[datetime]

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "QueueItem":
        return cls(
            id=row["id"],
            wa_message_id=row["wa_message_id"],
            sender_jid=row["sender_jid"],
            text=row["text"],
            response=row["response"],
            status=row["status"],
            session_id=row["session_id"],
            created_at=from_ms(row["created_at"]),
            completed_at=from_ms(row["completed_at"]),
            sent_at=from_ms(row["sent_at"]),
        )


class QueueStore:
    """Queue operations on the message_queue table."""

    def __init__(self, db: Database):
        self.db = db

    def enqueue(self, wa_message_id: str, sender_jid: str, text: str) -> int:
        """Insert a pending inbound message. Returns the queue id."""
        with self.db.connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO message_queue (wa_message_id, sender_jid, text, status, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (wa_message_id, sender_jid, text, PENDING, now_ms()),
            )
            return cursor.lastrowid

    def enqueue_notification(self, text: str) -> int:
        """Insert an already-completed item whose response goes straight to the owner."""
        ts = now_ms()
        with self.db.connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO message_queue
                    (wa_message_id, sender_jid, text, response, status, created_at, completed_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (f"system-{ts}", SYSTEM_SENDER, NOTIFICATION_TEXT, text, COMPLETED, ts, ts),
            )
            return cursor.lastrowid

    def claim_next(self) -> Optional[QueueItem]:
        """Atomically move the oldest pending item to processing and return it."""
        with self.db.transaction() as conn:
            # fetchall() steps the RETURNING statement to completion before COMMIT
            rows = conn.execute(
                """
                UPDATE message_queue SET status = ?
                WHERE id = (
                    SELECT id FROM message_queue
                    WHERE status = ?
                    ORDER BY id ASC
                    LIMIT 1
                )
                RETURNING *
                """,
                (PROCESSING, PENDING),
            ).fetchall()
        return QueueItem.from_row(rows[0]) if rows else None

    def complete(self, item_id: int, response: str, success: bool,
                 session_id: Optional[str] = None) -> None:
        """Store the final response; status is completed iff success."""
        with self.db.connect() as conn:
            conn.execute(
                """
                UPDATE message_queue
                SET response = ?, status = ?, session_id = ?, completed_at = ?
                WHERE id = ?
                """,
                (response, COMPLETED if success else FAILED, session_id, now_ms(), item_id),
            )

    def fail(self, item_id: int, response: str) -> None:
        """Mark an item failed, keeping whatever session id it already had."""
        with self.db.connect() as conn:
            conn.execute(
                "UPDATE message_queue SET response = ?, status = ?, completed_at = ? WHERE id = ?",
                (response, FAILED, now_ms(), item_id),
            )

    def mark_delivered(self, item_id: int) -> bool:
        """Stamp sent_at once. Returns False if the item was already stamped."""
        with self.db.connect() as conn:
            cursor = conn.execute(
                "UPDATE message_queue SET sent_at = ? WHERE id = ? AND sent_at IS NULL",
                (now_ms(), item_id),
            )
            return cursor.rowcount == 1

    def reset_stuck(self) -> list[int]:
        """Return items left in processing by a crashed run to pending."""
        with self.db.transaction() as conn:
            rows = conn.execute(
                "UPDATE message_queue SET status = ? WHERE status = ? RETURNING id",
                (PENDING, PROCESSING),
            ).fetchall()
        return sorted(row["id"] for row in rows)

    def get(self, item_id: int) -> Optional[QueueItem]:
        with self.db.connect() as conn:
            row = conn.execute("SELECT * FROM message_queue WHERE id = ?", (item_id,)).fetchone()
        return QueueItem.from_row(row) if row else None

    def undelivered(self) -> list[QueueItem]:
        """Finished items (completed or failed) whose response has not been handed to the transport."""
        with self.db.connect() as conn:
            rows = conn.execute(
                """
                SELECT * FROM message_queue
                WHERE status IN (?, ?) AND response IS NOT NULL AND sent_at IS NULL
                ORDER BY id ASC
                """,
                (COMPLETED, FAILED),
            ).fetchall()
        return [QueueItem.from_row(row) for row in rows]

    def current_processing(self) -> Optional[QueueItem]:
        with self.db.connect() as conn:
            row = conn.execute(
                "SELECT * FROM message_queue WHERE status = ? ORDER BY id ASC LIMIT 1",
                (PROCESSING,),
            ).fetchone()
        return QueueItem.from_row(row) if row else None

    def latest_with_session(self) -> Optional[QueueItem]:
        """Most recent item that recorded a session id."""
        with self.db.connect() as conn:
            row = conn.execute(
                """
                SELECT * FROM message_queue
                WHERE session_id IS NOT NULL AND session_id != ''
                ORDER BY id DESC
                LIMIT 1
                """
            ).fetchone()
        return QueueItem.from_row(row) if row else None

    def count_since(self, since: datetime) -> int:
        """Inbound messages received since a point in time (notifications excluded)."""
        with self.db.connect() as conn:
            row = conn.execute(
                "SELECT COUNT(*) FROM message_queue WHERE created_at >= ? AND sender_jid != ?",
                (to_ms(since), SYSTEM_SENDER),
            ).fetchone()
        return row[0]

    def counts_by_status(self) -> dict[str, int]:
        counts = {status: 0 for status in STATUSES}
        with self.db.connect() as conn:
            for row in conn.execute("SELECT status, COUNT(*) AS n FROM message_queue GROUP BY status"):
                counts[row["status"]] = row["n"]
        return counts
