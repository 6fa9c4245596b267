"""Alert policy for the heartbeat: quiet hours, per-type cooldowns, the overnight buffer."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from wa_assistant.checks import CheckResult
from wa_assistant.common import now_ms, to_ms
from wa_assistant.db import Database

log = logging.getLogger(__name__)

COOLDOWNS = {
    "docker": timedelta(minutes=30),
    "disk": timedelta(hours=1),
    "pm2": timedelta(minutes=5),
    "reminder": timedelta(0),
}
DEFAULT_COOLDOWN = timedelta(minutes=30)


def is_quiet_hours(hour: int, start: int, end: int) -> bool:
    """True inside [start, end). A window with start > end wraps midnight (23-7)."""
    if start > end:
        return hour >= start or hour < end
    return start <= hour < end


class AlertStore:
    def __init__(self, db: Database):
        self.db = db

    def should_send(self, check: CheckResult, now: Optional[datetime] = None) -> bool:
        """False if an alert with the same dedup key went out inside the cooldown."""
        cooldown = COOLDOWNS.get(check.type, DEFAULT_COOLDOWN)
        if not cooldown:
            return True
        cutoff = (now or datetime.now(timezone.utc)) - cooldown
        with self.db.connect() as conn:
            row = conn.execute(
                "SELECT 1 FROM alert_history WHERE dedup_key = ? AND sent_at > ? LIMIT 1",
                (check.dedup_key, to_ms(cutoff)),
            ).fetchone()
        return row is None

    def record(self, check: CheckResult, now: Optional[datetime] = None) -> None:
        sent_at = to_ms(now) if now else now_ms()
        with self.db.connect() as conn:
            conn.execute(
                "INSERT INTO alert_history (dedup_key, type, severity, message, sent_at) VALUES (?, ?, ?, ?, ?)",
                (check.dedup_key, check.type, check.severity, check.message, sent_at),
            )

    def queue_for_summary(self, check: CheckResult) -> None:
        with self.db.connect() as conn:
            conn.execute(
                "INSERT INTO pending_summary_items (type, message, created_at) VALUES (?, ?, ?)",
                (check.type, check.message, now_ms()),
            )
        log.info(f"Queued for morning summary: {check.dedup_key}")

    def drain_summary(self) -> list[dict]:
        """Read and delete buffered items. Only the rows read are deleted."""
        with self.db.transaction() as conn:
            rows = conn.execute("SELECT * FROM pending_summary_items ORDER BY id ASC").fetchall()
            if rows:
                ids = [row["id"] for row in rows]
                placeholders = ",".join("?" * len(ids))
                conn.execute(f"DELETE FROM pending_summary_items WHERE id IN ({placeholders})", ids)
        return [{"type": row["type"], "message": row["message"]} for row in rows]
