"""
Reminders: set by /remind, fired by the heartbeat.

Firing enqueues a pre-filled notification (no assistant call). One-shot
reminders become 'sent'; recurring ones move due_at forward and stay pending.
"""
from __future__ import annotations

import logging
import re
import sqlite3
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from wa_assistant.common import from_ms, now_ms, to_ms
from wa_assistant.db import Database
from wa_assistant.i18n import Translations

log = logging.getLogger(__name__)

PENDING = "pending"
SENT = "sent"

RECURRENCE_STEPS = {
    "daily": timedelta(days=1),
    "weekly": timedelta(days=7),
}


@dataclass
class Reminder:
    id: int
    text: str
    due_at: datetime
    recurrence: Optional[str]
    status: str
    created_at: Optional[datetime]

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Reminder":
        return cls(
            id=row["id"],
            text=row["text"],
            due_at=from_ms(row["due_at"]),
            recurrence=row["recurrence"],
            status=row["status"],
            created_at=from_ms(row["created_at"]),
        )


def parse_remind(args: str, t: Translations) -> Optional[tuple[str, timedelta]]:
    """Parse "<text> in <N> <unit>" (localized). Returns (text, delay) or None."""
    match = re.match(t.remind_pattern, args.strip(), re.IGNORECASE)
    if not match:
        return None
    text, amount, unit = match.group(1).strip(), int(match.group(2)), match.group(3).lower()

    if unit.startswith(t.remind_units_day):
        delay = timedelta(days=amount)
    elif unit.startswith(t.remind_units_hour):
        delay = timedelta(hours=amount)
    elif unit.startswith(t.remind_units_minute):
        delay = timedelta(minutes=amount)
    elif unit.startswith(t.remind_units_second):
        delay = timedelta(seconds=amount)
    else:
        delay = timedelta(minutes=amount)
    return text, delay


class ReminderStore:
    def __init__(self, db: Database):
        self.db = db

    def add(self, text: str, due_at: datetime, recurrence: Optional[str] = None) -> int:
        with self.db.connect() as conn:
            cursor = conn.execute(
                "INSERT INTO reminders (text, due_at, recurrence, status, created_at) VALUES (?, ?, ?, ?, ?)",
                (text, to_ms(due_at), recurrence, PENDING, now_ms()),
            )
            return cursor.lastrowid

    def get(self, reminder_id: int) -> Optional[Reminder]:
        with self.db.connect() as conn:
            row = conn.execute("SELECT * FROM reminders WHERE id = ?", (reminder_id,)).fetchone()
        return Reminder.from_row(row) if row else None

    def due(self, now: Optional[datetime] = None) -> list[Reminder]:
        """Pending reminders whose due time has passed."""
        now = now or datetime.now(timezone.utc)
        with self.db.connect() as conn:
            rows = conn.execute(
                "SELECT * FROM reminders WHERE status = ? AND due_at <= ? ORDER BY due_at ASC",
                (PENDING, to_ms(now)),
            ).fetchall()
        return [Reminder.from_row(row) for row in rows]

    def mark_fired(self, reminder: Reminder) -> None:
        """Advance a recurring reminder by its step, or mark a one-shot one sent."""
        with self.db.connect() as conn:
            if reminder.recurrence:
                step = RECURRENCE_STEPS.get(reminder.recurrence)
                if step is None:
                    log.warning(f"Unknown recurrence '{reminder.recurrence}' on reminder #{reminder.id}, treating as daily")
                    step = RECURRENCE_STEPS["daily"]
                conn.execute(
                    "UPDATE reminders SET due_at = ? WHERE id = ?",
                    (to_ms(reminder.due_at + step), reminder.id),
                )
            else:
                conn.execute("UPDATE reminders SET status = ? WHERE id = ?", (SENT, reminder.id))

    def next_due(self) -> Optional[Reminder]:
        with self.db.connect() as conn:
            row = conn.execute(
                "SELECT * FROM reminders WHERE status = ? ORDER BY due_at ASC LIMIT 1",
                (PENDING,),
            ).fetchone()
        return Reminder.from_row(row) if row else None
