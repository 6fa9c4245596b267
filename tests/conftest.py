"""
Shared fixtures for the WhatsApp assistant tests.

Every test gets its own SQLite file under tmp_path. Claude and the WhatsApp
bridge are replaced by in-memory fakes (FakeInvoker, FakeTransport) so the
queue, session and delivery logic run for real without any network.
"""
from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from wa_assistant.claude import InvocationOutcome
from wa_assistant.commands import CommandInterceptor
from wa_assistant.config import Settings
from wa_assistant.context import PromptBuilder
from wa_assistant.db import Database
from wa_assistant.i18n import EN
from wa_assistant.memory import MemoryStore
from wa_assistant.message_queue import QueueStore
from wa_assistant.outbound import OutboundStore
from wa_assistant.processor import Processor
from wa_assistant.reminders import ReminderStore
from wa_assistant.session import SessionManager

OWNER_JID = "48111222333@s.whatsapp.net"
OWNER_LID = "987654321@lid"


# ── Fakes ───────────────────────────────────────────────────────────────

class FakeInvoker:
    """Scripted stand-in for ClaudeInvoker.

    Queue outcomes with push(); each invoke() pops the next one. With nothing
    queued it succeeds with "I'll help with that." and echoes the session id.
    """

    def __init__(self):
        self.calls: list[dict] = []
        self._script: list[InvocationOutcome] = []

    def push(self, success: bool = True, text: str = "", session_id: Optional[str] = None,
             error: Optional[str] = None):
        self._script.append(InvocationOutcome(success, text, session_id, error))

    def invoke(self, prompt: str, session_id: str, resume: bool = False,
               sudo: bool = False) -> InvocationOutcome:
        self.calls.append({"prompt": prompt, "session_id": session_id, "resume": resume, "sudo": sudo})
        if self._script:
            outcome = self._script.pop(0)
            if outcome.session_id is None:
                outcome.session_id = session_id
            return outcome
        return InvocationOutcome(True, "I'll help with that.", session_id)


class FakeTransport:
    """Records everything sent; set fail_on_send to make send_text raise."""

    def __init__(self):
        self.sent: list[tuple[str, str]] = []
        self.presence: list[tuple[str, bool]] = []
        self.fail_on_send = False

    def send_text(self, recipient: str, text: str) -> None:
        if self.fail_on_send:
            raise ConnectionError("bridge unreachable")
        self.sent.append((recipient, text))

    def set_presence(self, chat_jid: str, composing: bool) -> None:
        self.presence.append((chat_jid, composing))

    def health(self) -> bool:
        return True

    def close(self) -> None:
        pass


# ── Fixtures ────────────────────────────────────────────────────────────

@pytest.fixture
def settings(tmp_path):
    return Settings(
        owner_jid=OWNER_JID,
        owner_lid=OWNER_LID,
        owner_name="Ala",
        bot_name="Mietek",
        trigger_word="HeyMietek",
        data_dir=tmp_path / "data",
        mcp_config_path=tmp_path / "mcp-config.json",
        max_message_length=100,
    )


@pytest.fixture
def t():
    return EN


@pytest.fixture
def db(settings):
    return Database(settings.db_path)


@pytest.fixture
def queue(db):
    return QueueStore(db)


@pytest.fixture
def memory(db):
    return MemoryStore(db)


@pytest.fixture
def outbound(db):
    return OutboundStore(db)


@pytest.fixture
def reminders(db):
    return ReminderStore(db)


@pytest.fixture
def invoker():
    return FakeInvoker()


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def sessions(invoker, queue):
    return SessionManager(invoker, queue)


@pytest.fixture
def commands(t, queue, memory, reminders, outbound, sessions):
    return CommandInterceptor(
        t, queue, memory, reminders, outbound, sessions,
        system_summary=lambda _t: "💾 Disk: 42% used (10G/24G)",
    )


@pytest.fixture
def prompts(settings, t, memory):
    return PromptBuilder(settings, t, memory)


@pytest.fixture
def processor(settings, t, queue, sessions, commands, prompts, memory, outbound):
    return Processor(settings, t, queue, sessions, commands, prompts, memory, outbound)
