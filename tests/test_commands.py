"""Tests for the slash-command interceptor."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from wa_assistant.commands import CommandInterceptor, fold
from wa_assistant.i18n import PL
from wa_assistant.message_queue import QueueStore
from wa_assistant.outbound import APPROVED, PENDING_APPROVAL, REJECTED

OWNER = "48111222333@s.whatsapp.net"
NOW = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def pl_commands(queue, memory, reminders, outbound, sessions):
    return CommandInterceptor(PL, queue, memory, reminders, outbound, sessions,
                              system_summary=lambda _t: "")


class TestRouting:
    def test_plain_text_not_handled(self, commands):
        assert not commands.handle("hello there").handled

    def test_unknown_command_not_handled(self, commands):
        assert not commands.handle("/weather").handled

    def test_status_with_args_not_handled(self, commands):
        assert not commands.handle("/status please").handled

    def test_leading_whitespace_and_case(self, commands):
        assert commands.handle("  /MEMORY ").handled

    def test_fold(self):
        assert fold("/Wyślij") == "/wyslij"
        assert fold("/ODRZUĆ") == "/odrzuc"


class TestStatus:
    def test_status_report(self, commands, queue, sessions):
        queue.enqueue("wa-1", OWNER, "a")
        queue.enqueue("wa-2", OWNER, "b")
        sessions.current = "0123456789abcdef"

        result = commands.handle("/status")

        assert result.handled
        assert "*System Status*" in result.response
        assert "💾 Disk: 42% used (10G/24G)" in result.response
        assert "📬 Queue: 2 pending, 0 processing, 0 failed" in result.response
        assert "🧵 Session: 01234567" in result.response

    def test_status_without_session(self, commands):
        assert "🧵 Session: none" in commands.handle("/status").response


class TestMemoryCommands:
    def test_empty_memory(self, commands):
        assert commands.handle("/memory").response == "I don't have any stored facts yet."

    def test_memory_grouped_by_category(self, commands, memory):
        memory.save("coffee", "black", "preference")
        memory.save("dog", "Burek", "fact")
        memory.save("tea", "green", "preference")

        response = commands.handle("/memory").response

        assert response.startswith("*Stored facts:*")
        assert "*fact:*\n• dog: Burek" in response
        assert "*preference:*\n• coffee: black\n• tea: green" in response
        assert response.index("*fact:*") < response.index("*preference:*")

    def test_forget_existing(self, commands, memory):
        memory.save("coffee", "black")
        assert commands.handle("/forget coffee").response == "Forgot: coffee"
        assert memory.get_active("coffee") is None

    def test_forget_unknown_key_changes_nothing(self, commands, memory, db):
        memory.save("coffee", "black")

        result = commands.handle("/forget tea")

        assert result.response == 'Key "tea" not found in memory.'
        with db.connect() as conn:
            rows = conn.execute("SELECT key, is_active FROM user_memory").fetchall()
        assert [(r["key"], r["is_active"]) for r in rows] == [("coffee", 1)]

    def test_forget_without_key(self, commands):
        assert commands.handle("/forget").response == "Usage: /forget <key>"

    def test_forget_multiword_key(self, commands, memory):
        memory.save("favourite food", "pierogi")
        assert commands.handle("/forget favourite food").response == "Forgot: favourite food"


class TestClear:
    def test_clear_active_session(self, commands, sessions):
        sessions.current = "sid-1"
        result = commands.handle("/clear")
        assert result.response.startswith("Session cleared.")
        assert sessions.current is None

    def test_clear_without_session(self, commands):
        assert commands.handle("/clear").response.startswith("No active session.")


class TestRemind:
    def test_remind_minutes(self, commands, reminders):
        result = commands.handle("/remind stretch in 30 min", now=NOW)

        assert result.response == '⏰ Reminder set: "stretch" at 09:30'
        reminder = reminders.next_due()
        assert reminder.text == "stretch"
        assert reminder.due_at == NOW + timedelta(minutes=30)
        assert reminder.recurrence is None

    def test_remind_hours(self, commands, reminders):
        commands.handle("/remind call mom in 2 hours", now=NOW)
        assert reminders.next_due().due_at == NOW + timedelta(hours=2)

    def test_remind_bad_syntax(self, commands, reminders):
        result = commands.handle("/remind sometime later", now=NOW)
        assert result.response.startswith("Usage: /remind")
        assert reminders.next_due() is None

    def test_remind_polish_uses_local_time(self, pl_commands, reminders):
        # Due 10:00 UTC on 1 March, which is 11:00 in Warsaw
        result = pl_commands.handle("/remind spotkanie za 1 godz", now=NOW)
        assert result.response == '⏰ Przypomnienie ustawione: "spotkanie" o 11:00'
        assert reminders.next_due().due_at == NOW + timedelta(hours=1)


class TestApproval:
    def test_approve_by_id(self, commands, outbound):
        rid = outbound.create("48123456789", "hi")
        result = commands.handle(f"/approve {rid}")
        assert result.response == "✅ Approved sending to 48123456789."
        request = outbound.get(rid)
        assert request.status == APPROVED
        assert request.approved_at is not None

    def test_approve_without_id_takes_oldest(self, commands, outbound):
        first = outbound.create("48111111111", "one")
        second = outbound.create("48222222222", "two")
        commands.handle("/approve")
        assert outbound.get(first).status == APPROVED
        assert outbound.get(second).status == PENDING_APPROVAL

    def test_send_alias(self, commands, outbound):
        rid = outbound.create("48123456789", "hi")
        commands.handle(f"/send {rid}")
        assert outbound.get(rid).status == APPROVED

    def test_reject(self, commands, outbound):
        rid = outbound.create("48123456789", "hi")
        assert commands.handle(f"/reject {rid}").response == "❌ Rejected message to 48123456789."
        assert outbound.get(rid).status == REJECTED

    def test_already_handled(self, commands, outbound):
        rid = outbound.create("48123456789", "hi")
        outbound.reject(rid)
        result = commands.handle(f"/approve {rid}")
        assert result.response == f"Message #{rid} already handled (rejected)."
        assert outbound.get(rid).status == REJECTED

    def test_unknown_id(self, commands):
        assert commands.handle("/approve 999").response == "No message found to send."

    def test_non_numeric_id(self, commands, outbound):
        outbound.create("48123456789", "hi")
        assert commands.handle("/approve abc").response == "No message found to send."

    def test_out_of_range_id(self, commands, outbound):
        rid = outbound.create("48123456789", "hi")
        assert commands.handle("/approve 99999999999999999999").response == "No message found to send."
        assert outbound.get(rid).status == PENDING_APPROVAL

    def test_nothing_pending(self, commands):
        assert commands.handle("/reject").response == "No message found to send."

    def test_polish_words_with_diacritics(self, pl_commands, outbound):
        a = outbound.create("48123456789", "hi")
        b = outbound.create("48123456789", "bye")
        assert pl_commands.handle(f"/wyślij {a}").response == "✅ Zatwierdzono wysłanie do 48123456789."
        assert pl_commands.handle(f"/odrzuć {b}").response == "❌ Odrzucono wiadomość do 48123456789."
        assert outbound.get(a).status == APPROVED
        assert outbound.get(b).status == REJECTED

    def test_english_commands_work_in_polish(self, pl_commands, outbound):
        rid = outbound.create("48123456789", "hi")
        pl_commands.handle(f"/approve {rid}")
        assert outbound.get(rid).status == APPROVED


class TestCommandsDoNotTouchQueue:
    def test_no_queue_rows_created(self, commands, db):
        commands.handle("/memory")
        commands.handle("/status")
        assert QueueStore(db).counts_by_status()["pending"] == 0
