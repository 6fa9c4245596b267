"""
Processor: claims queued messages one at a time and produces responses.

Per item:
    non-owner chat  -> one-shot Claude call with the minimal external prompt
    owner command   -> CommandInterceptor, no Claude call
    owner message   -> resume (or new) session, one full-context retry if the
                       resume fails, then memory/send_message post-processing

Any exception marks that item failed with a short error text; the loop moves on.
"""
from __future__ import annotations

import logging
import os
import threading
from typing import Optional

from wa_assistant.claude import ClaudeInvoker
from wa_assistant.commands import CommandInterceptor
from wa_assistant.common import is_owner_chat, truncate
from wa_assistant.config import Settings
from wa_assistant.context import PromptBuilder
from wa_assistant.db import Database
from wa_assistant.i18n import Translations, get_translations
from wa_assistant.memory import MemoryStore
from wa_assistant.message_queue import QueueItem, QueueStore
from wa_assistant.outbound import OutboundStore
from wa_assistant.reminders import ReminderStore
from wa_assistant.scheduler import PollingLoop
from wa_assistant.session import InvocationMode, SessionManager

log = logging.getLogger(__name__)
lifecycle_log = logging.getLogger("lifecycle")

SUDO_PREFIX = "/sudo "
ERROR_PREVIEW = 200


def strip_sudo(text: str) -> tuple[str, bool]:
    """Remove a leading "/sudo " modifier. Returns (text, sudo)."""
    trimmed = text.strip()
    if trimmed.startswith(SUDO_PREFIX):
        return trimmed[len(SUDO_PREFIX):].strip(), True
    return text, False


class Processor:
    def __init__(
        self,
        settings: Settings,
        t: Translations,
        queue: QueueStore,
        sessions: SessionManager,
        commands: CommandInterceptor,
        prompts: PromptBuilder,
        memory: MemoryStore,
        outbound: OutboundStore,
    ):
        self.settings = settings
        self.t = t
        self.queue = queue
        self.sessions = sessions
        self.commands = commands
        self.prompts = prompts
        self.memory = memory
        self.outbound = outbound

    def recover(self) -> None:
        """Startup: requeue items a crashed run left in processing, pick up the last session."""
        lifecycle_log.info(f"PROCESSOR_STARTED | pid={os.getpid()}")
        stuck = self.queue.reset_stuck()
        if stuck:
            log.warning(
                f"Reset {len(stuck)} stuck message(s) from 'processing' to 'pending': "
                f"{', '.join(str(i) for i in stuck)}"
            )
        self.sessions.resume_last_known()

    def process_next(self) -> Optional[int]:
        """Claim and handle one item. Returns its id, or None when the queue is empty."""
        item = self.queue.claim_next()
        if item is None:
            return None

        log.info(f"Processing message {item.id}: {truncate(item.text, 80)}")
        try:
            self._handle(item)
        except Exception as e:
            log.exception(f"Failed to process message {item.id}: {e}")
            self.queue.fail(item.id, self.t.processing_error.format(error=truncate(str(e), ERROR_PREVIEW)))
        return item.id

    def _handle(self, item: QueueItem) -> None:
        if not is_owner_chat(item.sender_jid, self.settings.owner_jid):
            self._handle_external(item)
            return

        command = self.commands.handle(item.text)
        if command.handled:
            self.queue.complete(item.id, command.response or self.t.no_response, success=True)
            log.info(f"Command handled: {truncate(item.text.strip(), 30)}")
            return

        text, sudo = strip_sudo(item.text)
        if self.sessions.has_session:
            result = self.sessions.invoke(self.prompts.resume(text), InvocationMode.RESUME, sudo=sudo)
        else:
            result = self.sessions.invoke(self.prompts.full_context(text), InvocationMode.NEW, sudo=sudo)

        if result.retry_with_full_context:
            log.warning(f"Message {item.id}: resume failed, retrying with full context")
            result = self.sessions.invoke(self.prompts.full_context(text), InvocationMode.NEW, sudo=sudo)

        response = self._response_text(result.success, result.text, result.error)
        if result.success:
            response = self.memory.apply_directives(response)
            response = self.outbound.apply_directives(response, result.session_id, self.t)

        self.queue.complete(item.id, response or self.t.no_response, result.success, result.session_id)
        log.info(
            f"Message {item.id} {'completed' if result.success else 'failed'} "
            f"(session={(result.session_id or '')[:8]})"
        )

    def _handle_external(self, item: QueueItem) -> None:
        result = self.sessions.invoke(self.prompts.external(item.text), InvocationMode.ONE_SHOT)
        response = self._response_text(result.success, result.text, result.error)
        # One-shot session ids are never recorded, so a restart cannot adopt them
        self.queue.complete(item.id, response or self.t.no_response, result.success)
        log.info(f"[external] Message {item.id} {'completed' if result.success else 'failed'}")

    def _response_text(self, success: bool, text: str, error: Optional[str]) -> str:
        if success:
            return text
        return self.t.invocation_error.format(error=truncate(error or text or "unknown", ERROR_PREVIEW))


def build(settings: Settings, db: Database) -> Processor:
    """Wire a Processor and its collaborators against one database."""
    t = get_translations(settings.bot_lang)
    queue = QueueStore(db)
    memory = MemoryStore(db)
    outbound = OutboundStore(db)
    invoker = ClaudeInvoker(
        cwd=settings.data_dir.parent,
        max_turns=settings.max_turns,
        timeout=settings.claude_timeout,
        mcp_config=settings.mcp_config_path,
    )
    sessions = SessionManager(invoker, queue)
    commands = CommandInterceptor(t, queue, memory, ReminderStore(db), outbound, sessions)
    return Processor(settings, t, queue, sessions, commands, PromptBuilder(settings, t, memory), memory, outbound)


def run(settings: Settings, db: Database, stop: Optional[threading.Event] = None) -> None:
    """Processor entry point: recover, then poll until stopped."""
    processor = build(settings, db)
    processor.recover()
    PollingLoop("processor", processor.process_next, settings.poll_interval, stop).run()
    lifecycle_log.info("PROCESSOR_STOPPED")
