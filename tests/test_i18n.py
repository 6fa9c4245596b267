"""Tests for locale records and the date/time helpers."""
from __future__ import annotations

from datetime import datetime, timezone
from string import Formatter

import pytest

from wa_assistant.context import PromptBuilder
from wa_assistant.i18n import EN, PL, TRANSLATIONS, format_date, get_translations, local_now, render


def placeholders(template: str) -> set[str]:
    return {name for _, name, _, _ in Formatter().parse(template) if name}


class TestTranslations:
    def test_lookup_and_fallback(self):
        assert get_translations("pl") is PL
        assert get_translations("en") is EN
        assert get_translations("de") is EN

    @pytest.mark.parametrize("field", list(EN.model_fields))
    def test_locales_share_placeholders(self, field):
        en, pl = getattr(EN, field), getattr(PL, field)
        if isinstance(en, str) and field != "remind_pattern":
            assert placeholders(en) == placeholders(pl), field

    def test_render_supplies_names(self):
        assert render(EN.good_morning, "Mietek", "Ala") == "☀️ *Good morning Ala!*"

    def test_directive_examples_render_as_json(self):
        rendered = render(EN.send_message_instructions, "Mietek", "Ala")
        assert '{"to": "48123456789", "message": "message content"}' in rendered

    def test_all_locales_registered(self):
        assert set(TRANSLATIONS) == {"en", "pl"}


class TestDates:
    def test_local_now_converts_zone(self):
        utc = datetime(2026, 7, 1, 6, 30, tzinfo=timezone.utc)
        assert local_now(PL, utc).hour == 8  # CEST
        assert local_now(EN, utc).hour == 6

    def test_format_date(self):
        dt = datetime(2026, 3, 2, tzinfo=timezone.utc)
        assert format_date(dt, EN) == "Monday, March 2, 2026"
        assert format_date(dt, PL) == "poniedziałek, 2 marca 2026"


class TestPrompts:
    NOW = datetime(2026, 3, 2, 9, 15, tzinfo=timezone.utc)

    def test_full_context_sections(self, settings, memory):
        memory.save("coffee", "black", "preference")
        prompt = PromptBuilder(settings, EN, memory).full_context("hi there", now=self.NOW)

        assert prompt.startswith("You are Mietek - Ala's personal AI assistant.")
        assert "You are male." in prompt
        assert "Current time: Monday, March 2, 2026, 09:15." in prompt
        assert "--- MEMORY (stored facts about the user) ---\n[preference] coffee: black" in prompt
        assert "```send_message" in prompt
        assert prompt.endswith("--- CURRENT MESSAGE ---\nAla: hi there")

    def test_full_context_without_memory(self, settings, memory):
        prompt = PromptBuilder(settings, EN, memory).full_context("hi", now=self.NOW)
        assert "--- MEMORY" not in prompt

    def test_female_polish(self, settings, memory):
        female = settings.model_copy(update={"bot_gender": "female"})
        prompt = PromptBuilder(female, PL, memory).full_context("cześć", now=self.NOW)
        assert "Jesteś kobietą" in prompt
        assert "Obecny czas: poniedziałek, 2 marca 2026, 10:15." in prompt

    def test_resume_is_bare_text(self, settings, memory):
        assert PromptBuilder(settings, EN, memory).resume("and tomorrow?") == "and tomorrow?"

    def test_external_has_no_memory(self, settings, memory):
        memory.save("wifi", "hunter2")
        prompt = PromptBuilder(settings, EN, memory).external("hello", now=self.NOW)
        assert "hunter2" not in prompt
        assert "EXTERNAL CHAT RULES" in prompt
        assert prompt.endswith("--- MESSAGE ---\nhello")
