"""Prompt builders for the three invocation paths."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from wa_assistant.config import Settings
from wa_assistant.i18n import Translations, format_date, format_time, local_now, render
from wa_assistant.memory import MemoryStore


class PromptBuilder:
    def __init__(self, settings: Settings, t: Translations, memory: MemoryStore):
        self.settings = settings
        self.t = t
        self.memory = memory

    def _r(self, template: str, **values) -> str:
        return render(template, self.settings.bot_name, self.settings.owner_name, **values)

    def _preamble(self, now: Optional[datetime] = None) -> str:
        t = self.t
        local = local_now(t, now)
        gender = t.gender_female if self.settings.bot_gender == "female" else t.gender_male
        return "\n".join([
            self._r(t.system_identity),
            gender,
            t.tone_instruction,
            t.current_time.format(now=f"{format_date(local, t)}, {format_time(local)}"),
            "",
            self._r(t.response_format),
        ])

    def full_context(self, text: str, now: Optional[datetime] = None) -> str:
        """Prompt for a new session: identity, stored facts, directive instructions, message."""
        t = self.t
        parts = [self._preamble(now)]

        facts = self.memory.list_active()
        if facts:
            parts.append(f"\n{t.memory_header}")
            for fact in facts:
                parts.append(f"[{fact.category}] {fact.key}: {fact.value}")

        parts.append(f"\n{self._r(t.memory_instructions)}\n\n{self._r(t.send_message_instructions)}")
        parts.append(f"\n{t.current_message_header}\n{self.settings.owner_name}: {text}")
        return "\n".join(parts)

    def resume(self, text: str) -> str:
        # The resumed session already holds the full context
        return text

    def external(self, text: str, now: Optional[datetime] = None) -> str:
        """Minimal prompt for chats the owner shares with others. No memory, no directives."""
        t = self.t
        parts = [
            self._preamble(now) + "\n\n" + self._r(t.external_chat_rules),
            f"\n{t.message_header}\n{text}",
        ]
        return "\n".join(parts)
