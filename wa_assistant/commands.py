"""
Slash commands answered locally, without calling Claude.

    /status             host + queue + session overview
    /memory             list stored facts
    /clear              drop the current session
    /forget <key>       soft-delete a fact
    /remind <text> in <N> <unit>
    /approve [id]       approve a pending outbound message (oldest if no id)
    /reject [id]        reject one

Approve/reject also accept the locale's own words (e.g. /wyślij, /odrzuć),
matched without diacritics. "/sudo" is not a command here; the processor
strips it and widens the tool set for that one call.
"""
from __future__ import annotations

import logging
import unicodedata
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from wa_assistant import checks
from wa_assistant.i18n import Translations, format_time, local_now
from wa_assistant.memory import MemoryStore
from wa_assistant.message_queue import FAILED, PENDING, PROCESSING, QueueStore
from wa_assistant.outbound import PENDING_APPROVAL, OutboundRequest, OutboundStore
from wa_assistant.reminders import ReminderStore, parse_remind
from wa_assistant.session import SessionManager

log = logging.getLogger(__name__)
lifecycle_log = logging.getLogger("lifecycle")


@dataclass
class CommandResult:
    handled: bool
    response: Optional[str] = None


NOT_HANDLED = CommandResult(handled=False)

# Largest rowid SQLite can store
MAX_ROW_ID = 2**63 - 1


def fold(text: str) -> str:
    """Lowercase and strip diacritics ("/Wyślij" -> "/wyslij")."""
    decomposed = unicodedata.normalize("NFKD", text.lower())
    return "".join(c for c in decomposed if not unicodedata.combining(c))


class CommandInterceptor:
    def __init__(
        self,
        t: Translations,
        queue: QueueStore,
        memory: MemoryStore,
        reminders: ReminderStore,
        outbound: OutboundStore,
        sessions: SessionManager,
        system_summary: Callable[[Translations], str] = checks.system_summary,
    ):
        self.t = t
        self.queue = queue
        self.memory = memory
        self.reminders = reminders
        self.outbound = outbound
        self.sessions = sessions
        self.system_summary = system_summary

        self._approve = {fold(c) for c in t.approve_commands} | {"/approve"}
        self._reject = {fold(c) for c in t.reject_commands} | {"/reject"}

    def handle(self, text: str, now: Optional[datetime] = None) -> CommandResult:
        trimmed = text.strip()
        if not trimmed.startswith("/"):
            return NOT_HANDLED

        command, _, args = trimmed.partition(" ")
        command = fold(command)
        args = args.strip()

        if command == "/status" and not args:
            return self.status()
        if command == "/memory" and not args:
            return self.list_memory()
        if command == "/clear" and not args:
            return self.clear()
        if command == "/forget":
            return self.forget(args)
        if command == "/remind":
            return self.remind(args, now)
        if command in self._approve:
            return self.decide(args, approve=True)
        if command in self._reject:
            return self.decide(args, approve=False)
        return NOT_HANDLED

    def status(self) -> CommandResult:
        t = self.t
        lines = [t.status_title]
        summary = self.system_summary(t)
        if summary:
            lines.append(summary)

        counts = self.queue.counts_by_status()
        lines.append("")
        lines.append(t.status_queue.format(
            pending=counts[PENDING], processing=counts[PROCESSING], failed=counts[FAILED],
        ))
        if self.sessions.current:
            lines.append(t.status_session.format(session=self.sessions.current[:8]))
        else:
            lines.append(t.status_no_session)
        return CommandResult(True, "\n".join(lines).strip())

    def list_memory(self) -> CommandResult:
        facts = self.memory.list_active()
        if not facts:
            return CommandResult(True, self.t.no_memory)

        grouped: dict[str, list] = {}
        for fact in facts:
            grouped.setdefault(fact.category, []).append(fact)

        lines = [self.t.memory_title]
        for category, items in grouped.items():
            lines.append(f"*{category}:*")
            for item in items:
                lines.append(f"• {item.key}: {item.value}")
            lines.append("")
        return CommandResult(True, "\n".join(lines).strip())

    def clear(self) -> CommandResult:
        had_session = self.sessions.clear()
        return CommandResult(True, self.t.session_cleared if had_session else self.t.no_active_session)

    def forget(self, key: str) -> CommandResult:
        if not key:
            return CommandResult(True, self.t.forget_usage)
        if not self.memory.forget(key):
            return CommandResult(True, self.t.forget_not_found.format(key=key))
        log.info(f"Forgot memory: {key}")
        return CommandResult(True, self.t.forgot.format(key=key))

    def remind(self, args: str, now: Optional[datetime] = None) -> CommandResult:
        parsed = parse_remind(args, self.t)
        if parsed is None:
            return CommandResult(True, self.t.remind_usage)

        text, delay = parsed
        due_at = (now or datetime.now(timezone.utc)) + delay
        self.reminders.add(text, due_at)
        log.info(f'Reminder set: "{text}" at {due_at.isoformat()}')
        return CommandResult(True, self.t.reminder_set.format(
            text=text, time=format_time(local_now(self.t, due_at)),
        ))

    def _find_request(self, args: str) -> Optional[OutboundRequest]:
        if not args:
            return self.outbound.oldest_pending()
        if not (args.isascii() and args.isdigit()) or int(args) > MAX_ROW_ID:
            return None
        return self.outbound.get(int(args))

    def decide(self, args: str, approve: bool) -> CommandResult:
        t = self.t
        request = self._find_request(args)
        if request is None:
            return CommandResult(True, t.outbound_not_found)
        if request.status != PENDING_APPROVAL:
            return CommandResult(True, t.outbound_already_handled.format(id=request.id, status=request.status))

        if approve:
            self.outbound.approve(request.id)
            lifecycle_log.info(f"OUTBOUND_APPROVED | #{request.id} -> {request.target_phone}")
            return CommandResult(True, t.outbound_approved.format(phone=request.target_phone))

        self.outbound.reject(request.id)
        lifecycle_log.info(f"OUTBOUND_REJECTED | #{request.id}")
        return CommandResult(True, t.outbound_rejected.format(phone=request.target_phone))
