"""
Localized text for prompts, command replies and notifications.

Each locale is one frozen Translations record; adding a language means adding
one entry to TRANSLATIONS. Templates use str.format placeholders and are
resolved by render(), which always supplies {bot_name} and {owner_name}.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from pydantic import BaseModel


class Translations(BaseModel, frozen=True):
    """All user-facing strings for one locale."""

    # System prompt
    system_identity: str
    gender_male: str
    gender_female: str
    tone_instruction: str
    current_time: str
    response_format: str
    memory_header: str
    memory_instructions: str
    send_message_instructions: str
    current_message_header: str
    external_chat_rules: str
    message_header: str

    # Commands
    no_memory: str
    memory_title: str
    forget_usage: str
    forget_not_found: str
    forgot: str
    remind_usage: str
    reminder_set: str
    session_cleared: str
    no_active_session: str
    outbound_not_found: str
    outbound_already_handled: str
    outbound_approved: str
    outbound_rejected: str
    approve_commands: tuple[str, ...]
    reject_commands: tuple[str, ...]
    status_title: str
    status_queue: str
    status_session: str
    status_no_session: str

    # Outbound confirmation (replaces a send_message block)
    outbound_confirmation: str

    # Remind parsing: groups are (text, amount, unit); units match by prefix
    remind_pattern: str
    remind_units_second: tuple[str, ...]
    remind_units_minute: tuple[str, ...]
    remind_units_hour: tuple[str, ...]
    remind_units_day: tuple[str, ...]

    # Errors
    invocation_error: str
    processing_error: str
    no_response: str

    # Heartbeat checks
    docker_down: str
    docker_unhealthy: str
    disk_critical: str
    disk_warning: str
    pm2_down: str
    pm2_restarts: str
    reminder: str

    # System summary lines
    summary_disk: str
    summary_ram: str
    summary_docker: str
    summary_pm2: str
    summary_uptime: str

    # Daily summary
    good_morning: str
    system_status: str
    overnight_alerts: str
    yesterday_activity: str
    messages_processed: str
    weekdays: tuple[str, ...]
    months: tuple[str, ...]
    date_format: str
    timezone: str


EN = Translations(
    system_identity="You are {bot_name} - {owner_name}'s personal AI assistant. You communicate via WhatsApp.",
    gender_male="You are male.",
    gender_female="You are female.",
    tone_instruction="Be concise, specific, and helpful. Respond in English unless the user writes in another language.",
    current_time="Current time: {now}.",
    response_format=(
        "RESPONSE FORMAT - MANDATORY:\n"
        "Every response MUST start with a header containing your name and a separator:\n"
        "{bot_name}\n"
        "-----------\n"
        "<response content>\n"
        "-----------\n"
        'Never skip this format. Always start with "{bot_name}" on the first line, then "-----------" '
        'as separator, content, and closing "-----------".'
    ),
    memory_header="--- MEMORY (stored facts about the user) ---",
    memory_instructions=(
        "--- INSTRUCTIONS ---\n"
        "If the user says something worth remembering (preferences, facts about themselves, projects), "
        "add a JSON block at the end of your response:\n"
        "```memory_update\n"
        '{{"action":"save","category":"preference|fact|project|person","key":"short key","value":"value"}}\n'
        "```\n"
        "If the user asks to forget:\n"
        "```memory_update\n"
        '{{"action":"delete","key":"key to delete"}}\n'
        "```\n"
        "Do not mention this block in your response - it's an internal mechanism."
    ),
    send_message_instructions=(
        "You can send WhatsApp messages to other people on behalf of {owner_name}. Use this block:\n"
        "```send_message\n"
        '{{"to": "48123456789", "message": "message content"}}\n'
        "```\n"
        "Number in international format without +. {owner_name} must approve each such message.\n"
        "Do not mention the send_message block - it's an internal mechanism. "
        "Tell {owner_name} you're sending a message and wait for confirmation."
    ),
    current_message_header="--- CURRENT MESSAGE ---",
    external_chat_rules=(
        "IMPORTANT - EXTERNAL CHAT RULES:\n"
        "- You are in a WhatsApp chat where {owner_name} (the owner) is together with another person/people.\n"
        "- Your response goes DIRECTLY to this chat - everyone sees it.\n"
        '- If {owner_name} asks you to "tell someone something", "write to someone", "reply to them" - '
        "JUST WRITE IT in your response. That person is right here in the chat and will read your message.\n"
        "- NEVER ask for phone numbers, don't use send_message, don't suggest sending messages through other channels.\n"
        "- NEVER use memory_update or send_message blocks - they don't work in this mode.\n"
        "- Address the person in the chat directly, not {owner_name} "
        "(unless {owner_name} explicitly asks something for themselves)."
    ),
    message_header="--- MESSAGE ---",
    no_memory="I don't have any stored facts yet.",
    memory_title="*Stored facts:*\n",
    forget_usage="Usage: /forget <key>",
    forget_not_found='Key "{key}" not found in memory.',
    forgot="Forgot: {key}",
    remind_usage="Usage: /remind <text> in <number> <min/hours/days>\nExample: /remind meeting in 30 min",
    reminder_set='⏰ Reminder set: "{text}" at {time}',
    session_cleared="Session cleared. Next message will start a new conversation.",
    no_active_session="No active session. Next message will start a new conversation.",
    outbound_not_found="No message found to send.",
    outbound_already_handled="Message #{id} already handled ({status}).",
    outbound_approved="✅ Approved sending to {phone}.",
    outbound_rejected="❌ Rejected message to {phone}.",
    approve_commands=("/approve", "/send"),
    reject_commands=("/reject",),
    status_title="*System Status*\n",
    status_queue="📬 Queue: {pending} pending, {processing} processing, {failed} failed",
    status_session="🧵 Session: {session}",
    status_no_session="🧵 Session: none",
    outbound_confirmation=(
        "\n📨 *Message to send (#{id}):*\n"
        "To: {phone}\n"
        "Content: {message}\n"
        "\nReply /approve {id} or /reject {id}"
    ),
    remind_pattern=r"^(.+?)\s+in\s+(\d+)\s*(min(?:utes?)?|m|hours?|h|seconds?|s|days?|d)\s*$",
    remind_units_second=("s",),
    remind_units_minute=("m",),
    remind_units_hour=("h",),
    remind_units_day=("d",),
    invocation_error="Sorry, an error occurred: {error}",
    processing_error="Processing error: {error}",
    no_response="(no response)",
    docker_down="🐳 Container {name} is {state}: {status}",
    docker_unhealthy="🐳 Container {name} is unhealthy: {status}",
    disk_critical="💾 CRITICAL: Disk {percent}% used ({used}/{total})",
    disk_warning="💾 Disk {percent}% used ({used}/{total})",
    pm2_down="⚙️ PM2 process {name} is {status} (restarts: {restarts})",
    pm2_restarts="⚙️ PM2 process {name} has {restarts} restarts",
    reminder="⏰ Reminder: {text}",
    summary_disk="💾 Disk: {percent}% used ({used}/{total})",
    summary_ram="🧠 RAM: {used} used / {total} total",
    summary_docker="🐳 Docker:\n{containers}",
    summary_pm2="⚙️ PM2:\n{processes}",
    summary_uptime="⏱️ Uptime: {uptime}",
    good_morning="☀️ *Good morning {owner_name}!*",
    system_status="*System status:*",
    overnight_alerts="*Overnight alerts:*",
    yesterday_activity="*Yesterday's activity:*",
    messages_processed="• {count} messages processed",
    weekdays=("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"),
    months=("January", "February", "March", "April", "May", "June", "July",
            "August", "September", "October", "November", "December"),
    date_format="{weekday}, {month} {day}, {year}",
    timezone="UTC",
)

PL = Translations(
    system_identity="Jesteś {bot_name} - osobisty asystent AI {owner_name}. Komunikujesz się przez WhatsApp.",
    gender_male='Jesteś mężczyzną - używaj męskich form gramatycznych (np. "zrobiłem", "sprawdziłem", "jestem gotowy").',
    gender_female='Jesteś kobietą - używaj żeńskich form gramatycznych (np. "zrobiłam", "sprawdziłam", "jestem gotowa").',
    tone_instruction="Bądź zwięzły, konkretny, pomocny. Odpowiadaj po polsku, chyba że użytkownik pisze po angielsku.",
    current_time="Obecny czas: {now}.",
    response_format=(
        "FORMATOWANIE ODPOWIEDZI - OBOWIĄZKOWE:\n"
        "Każda Twoja odpowiedź MUSI zaczynać się od nagłówka z Twoim imieniem i separatorem:\n"
        "{bot_name}\n"
        "-----------\n"
        "<treść odpowiedzi>\n"
        "-----------\n"
        'Nigdy nie pomijaj tego formatu. Zawsze zaczynaj od "{bot_name}" w pierwszej linii, '
        'potem "-----------" jako separator, treść, i zamykający "-----------".'
    ),
    memory_header="--- PAMIĘĆ (zapamiętane fakty o użytkowniku) ---",
    memory_instructions=(
        "--- INSTRUKCJE ---\n"
        "Jeśli użytkownik powie coś co warto zapamiętać (preferencje, fakty o sobie, projekty), "
        "dodaj na końcu odpowiedzi blok JSON:\n"
        "```memory_update\n"
        '{{"action":"save","category":"preference|fact|project|person","key":"krótki klucz","value":"wartość"}}\n'
        "```\n"
        "Jeśli użytkownik każe zapomnieć:\n"
        "```memory_update\n"
        '{{"action":"delete","key":"klucz do usunięcia"}}\n'
        "```\n"
        "Nie wspominaj o tym bloku w odpowiedzi - to wewnętrzny mechanizm."
    ),
    send_message_instructions=(
        "Możesz wysyłać wiadomości WhatsApp do innych osób w imieniu {owner_name}. Użyj bloku:\n"
        "```send_message\n"
        '{{"to": "48123456789", "message": "treść wiadomości"}}\n'
        "```\n"
        "Numer w formacie międzynarodowym bez +. {owner_name} musi zatwierdzić każdą taką wiadomość.\n"
        "Nie wspominaj o bloku send_message - to wewnętrzny mechanizm. "
        "Powiedz {owner_name} że wysyłasz wiadomość i poczekaj na jego potwierdzenie."
    ),
    current_message_header="--- AKTUALNA WIADOMOŚĆ ---",
    external_chat_rules=(
        "WAŻNE - ZASADY CZATU ZEWNĘTRZNEGO:\n"
        "- Piszesz w czacie WhatsApp gdzie {owner_name} (właściciel) jest razem z inną osobą/osobami.\n"
        "- Twoja odpowiedź trafia BEZPOŚREDNIO do tego czatu - wszyscy ją widzą.\n"
        '- Jeśli {owner_name} prosi żebyś "powiedział coś komuś", "napisał do kogoś", "odpowiedział mu/jej" - '
        "PO PROSTU NAPISZ TO w odpowiedzi. Ta osoba jest tutaj na czacie i przeczyta Twoją wiadomość.\n"
        "- NIGDY nie pytaj o numer telefonu, nie używaj send_message, "
        "nie proponuj wysyłania wiadomości innymi kanałami.\n"
        "- NIGDY nie używaj bloków memory_update ani send_message - nie działają w tym trybie.\n"
        "- Zwracaj się bezpośrednio do osoby na czacie, nie do {owner_name} "
        "(chyba że {owner_name} wyraźnie pyta o coś dla siebie)."
    ),
    message_header="--- WIADOMOŚĆ ---",
    no_memory="Nie mam jeszcze żadnych zapamiętanych faktów.",
    memory_title="*Zapamiętane fakty:*\n",
    forget_usage="Użycie: /forget <klucz>",
    forget_not_found='Nie znalazłem klucza "{key}" w pamięci.',
    forgot="Zapomniałem: {key}",
    remind_usage="Użycie: /remind <tekst> za <liczba> <min/godz/dni>\nNp: /remind spotkanie za 30 min",
    reminder_set='⏰ Przypomnienie ustawione: "{text}" o {time}',
    session_cleared="Sesja wyczyszczona. Następna wiadomość zacznie nową rozmowę.",
    no_active_session="Brak aktywnej sesji. Następna wiadomość zacznie nową rozmowę.",
    outbound_not_found="Nie znaleziono wiadomości do wysłania.",
    outbound_already_handled="Wiadomość #{id} już obsłużona ({status}).",
    outbound_approved="✅ Zatwierdzono wysłanie do {phone}.",
    outbound_rejected="❌ Odrzucono wiadomość do {phone}.",
    approve_commands=("/wyslij", "/approve"),
    reject_commands=("/odrzuc", "/reject"),
    status_title="*Status systemu*\n",
    status_queue="📬 Kolejka: {pending} oczekujących, {processing} w toku, {failed} błędów",
    status_session="🧵 Sesja: {session}",
    status_no_session="🧵 Sesja: brak",
    outbound_confirmation=(
        "\n📨 *Wiadomość do wysłania (#{id}):*\n"
        "Do: {phone}\n"
        "Treść: {message}\n"
        "\nNapisz /wyślij {id} lub /odrzuć {id}"
    ),
    remind_pattern=r"^(.+?)\s+za\s+(\d+)\s*(min(?:ut[ęy]?)?|m|godz(?:in[ęy]?)?|h|sekund[ęy]?|s|dni|dzień|d)\s*$",
    remind_units_second=("s",),
    remind_units_minute=("m",),
    remind_units_hour=("g", "h"),
    remind_units_day=("d",),
    invocation_error="Przepraszam, wystąpił błąd: {error}",
    processing_error="Błąd przetwarzania: {error}",
    no_response="(brak odpowiedzi)",
    docker_down="🐳 Kontener {name} jest {state}: {status}",
    docker_unhealthy="🐳 Kontener {name} jest unhealthy: {status}",
    disk_critical="💾 KRYTYCZNY: Dysk {percent}% użycia ({used}/{total})",
    disk_warning="💾 Dysk {percent}% użycia ({used}/{total})",
    pm2_down="⚙️ PM2 proces {name} jest {status} (restarts: {restarts})",
    pm2_restarts="⚙️ PM2 proces {name} ma {restarts} restartów",
    reminder="⏰ Przypomnienie: {text}",
    summary_disk="💾 Dysk: {percent}% ({used}/{total})",
    summary_ram="🧠 RAM: {used}/{total}",
    summary_docker="🐳 Docker:\n{containers}",
    summary_pm2="⚙️ PM2:\n{processes}",
    summary_uptime="⏱️ {uptime}",
    good_morning="☀️ *Dzień dobry {owner_name}!*",
    system_status="*Status systemu:*",
    overnight_alerts="*Alerty z nocy:*",
    yesterday_activity="*Wczorajsza aktywność:*",
    messages_processed="• {count} wiadomości przetworzonych",
    weekdays=("poniedziałek", "wtorek", "środa", "czwartek", "piątek", "sobota", "niedziela"),
    months=("stycznia", "lutego", "marca", "kwietnia", "maja", "czerwca", "lipca",
            "sierpnia", "września", "października", "listopada", "grudnia"),
    date_format="{weekday}, {day} {month} {year}",
    timezone="Europe/Warsaw",
)

TRANSLATIONS: dict[str, Translations] = {"en": EN, "pl": PL}


def get_translations(lang: str) -> Translations:
    """Get translations for a locale. Falls back to English."""
    return TRANSLATIONS.get(lang, EN)


def render(template: str, bot_name: str, owner_name: str, **values) -> str:
    """Fill a template's placeholders; bot/owner names are always available."""
    return template.format(bot_name=bot_name, owner_name=owner_name, **values)


def local_now(t: Translations, now: Optional[datetime] = None) -> datetime:
    """Current time in the locale's timezone."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(ZoneInfo(t.timezone))


def format_date(dt: datetime, t: Translations) -> str:
    return t.date_format.format(
        weekday=t.weekdays[dt.weekday()],
        month=t.months[dt.month - 1],
        day=dt.day,
        year=dt.year,
    )


def format_time(dt: datetime) -> str:
    return dt.strftime("%H:%M")
