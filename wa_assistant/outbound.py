"""
Outbound messages the assistant proposes to send to third parties.

pending_approval -> approved | rejected   (operator command only)
approved -> sent                          (bridge, after delivery)
"""
from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from wa_assistant import directives
from wa_assistant.common import from_ms, normalize_phone, now_ms, truncate
from wa_assistant.db import Database
from wa_assistant.directives import SendDirective
from wa_assistant.i18n import Translations

log = logging.getLogger(__name__)

PENDING_APPROVAL = "pending_approval"
APPROVED = "approved"
REJECTED = "rejected"
SENT = "sent"

PREVIEW_LIMIT = 200


@dataclass
class OutboundRequest:
    id: int
    target_phone: str
    message: str
    status: str
    session_id: Optional[str]
    created_at: Optional[datetime]
    approved_at: Optional[datetime]
    sent_at: Optional[datetime]

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "OutboundRequest":
        return cls(
            id=row["id"],
            target_phone=row["target_phone"],
            message=row["message"],
            status=row["status"],
            session_id=row["session_id"],
            created_at=from_ms(row["created_at"]),
            approved_at=from_ms(row["approved_at"]),
            sent_at=from_ms(row["sent_at"]),
        )


class OutboundStore:
    def __init__(self, db: Database):
        self.db = db

    def create(self, target_phone: str, message: str, session_id: Optional[str] = None) -> int:
        with self.db.connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO outbound_messages (target_phone, message, status, session_id, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (normalize_phone(target_phone), message, PENDING_APPROVAL, session_id, now_ms()),
            )
            return cursor.lastrowid

    def get(self, request_id: int) -> Optional[OutboundRequest]:
        with self.db.connect() as conn:
            row = conn.execute("SELECT * FROM outbound_messages WHERE id = ?", (request_id,)).fetchone()
        return OutboundRequest.from_row(row) if row else None

    def oldest_pending(self) -> Optional[OutboundRequest]:
        with self.db.connect() as conn:
            row = conn.execute(
                "SELECT * FROM outbound_messages WHERE status = ? ORDER BY id ASC LIMIT 1",
                (PENDING_APPROVAL,),
            ).fetchone()
        return OutboundRequest.from_row(row) if row else None

    def pending(self) -> list[OutboundRequest]:
        with self.db.connect() as conn:
            rows = conn.execute(
                "SELECT * FROM outbound_messages WHERE status = ? ORDER BY id ASC",
                (PENDING_APPROVAL,),
            ).fetchall()
        return [OutboundRequest.from_row(row) for row in rows]

    def _decide(self, request_id: int, status: str) -> bool:
        with self.db.connect() as conn:
            cursor = conn.execute(
                "UPDATE outbound_messages SET status = ?, approved_at = ? WHERE id = ? AND status = ?",
                (status, now_ms() if status == APPROVED else None, request_id, PENDING_APPROVAL),
            )
            return cursor.rowcount == 1

    def approve(self, request_id: int) -> bool:
        """pending_approval -> approved. False if the request was not pending."""
        return self._decide(request_id, APPROVED)

    def reject(self, request_id: int) -> bool:
        return self._decide(request_id, REJECTED)

    def approved(self) -> list[OutboundRequest]:
        """Approved requests waiting for the bridge to send them."""
        with self.db.connect() as conn:
            rows = conn.execute(
                "SELECT * FROM outbound_messages WHERE status = ? ORDER BY id ASC",
                (APPROVED,),
            ).fetchall()
        return [OutboundRequest.from_row(row) for row in rows]

    def mark_sent(self, request_id: int) -> None:
        with self.db.connect() as conn:
            conn.execute(
                "UPDATE outbound_messages SET status = ?, sent_at = ? WHERE id = ? AND status = ?",
                (SENT, now_ms(), request_id, APPROVED),
            )

    def apply_directives(self, text: str, session_id: Optional[str], t: Translations) -> str:
        """Turn send_message blocks into approval requests.

        Each valid block is replaced by a confirmation naming the request id;
        invalid blocks are dropped.
        """
        found = directives.scan(text, directives.SEND_TAG, SendDirective)
        replacements = []
        for directive in found:
            if not directive.ok:
                replacements.append((directive, ""))
                continue
            payload = directive.payload
            phone = normalize_phone(payload.to)
            if not phone:
                log.warning(f"send_message block without a usable number: {payload.to!r}")
                replacements.append((directive, ""))
                continue
            request_id = self.create(phone, payload.message, session_id)
            log.info(f"Outbound request #{request_id} to {phone} awaiting approval")
            confirmation = t.outbound_confirmation.format(
                id=request_id,
                phone=phone,
                message=truncate(payload.message, PREVIEW_LIMIT, "..."),
            )
            replacements.append((directive, confirmation))
        return directives.replace_blocks(text, replacements)
