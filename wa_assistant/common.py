"""
Shared utilities used by the bridge, processor and heartbeat.

JID handling, timestamp conversion and message chunking live here so the
three processes agree on them without importing each other.
"""
from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Optional

# Sender identity used for heartbeat/reminder notifications
SYSTEM_SENDER = "system"

_DEVICE_SUFFIX = re.compile(r":\d+@")


def normalize_jid(jid: str) -> str:
    """Strip the device suffix from a JID.

    "48123456789:12@s.whatsapp.net" -> "48123456789@s.whatsapp.net"
    """
    return _DEVICE_SUFFIX.sub("@", jid)


def is_lid(jid: str) -> bool:
    """LID JIDs are WhatsApp's linked-device ids; only the owner's get queued."""
    return jid.endswith("@lid")


def is_group_jid(jid: str) -> bool:
    return jid.endswith("@g.us")


def is_owner_chat(sender_jid: str, owner_jid: str) -> bool:
    """Check whether a queued item came from the owner's own chat."""
    if is_lid(sender_jid):
        return True
    return bool(owner_jid) and normalize_jid(sender_jid) == normalize_jid(owner_jid)


def normalize_phone(raw: str) -> str:
    """Reduce a phone number to digits only ("+48 123-456-789" -> "48123456789")."""
    return re.sub(r"\D", "", raw)


def phone_to_jid(phone: str) -> str:
    return f"{phone}@s.whatsapp.net"


def truncate(text: str, limit: int, suffix: str = "") -> str:
    """Cut text to limit characters, appending suffix only when something was cut."""
    if len(text) <= limit:
        return text
    return text[:limit] + suffix


def now_ms() -> int:
    return int(datetime.now(timezone.utc).timestamp() * 1000)


def to_ms(dt: datetime) -> int:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)


def from_ms(value: Optional[int]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


def chunk_message(text: str, limit: int) -> list[str]:
    """Split text into WhatsApp-sized chunks.

    Prefers the last newline in the back half of the window, then the last
    space in the back 70%, and hard-splits at the limit otherwise. Leading
    whitespace of each following chunk is dropped.
    """
    if len(text) <= limit:
        return [text]

    chunks = []
    remaining = text

    while remaining:
        if len(remaining) <= limit:
            chunks.append(remaining)
            break

        split_idx = remaining.rfind("\n", 0, limit + 1)
        if split_idx < limit * 0.5:
            split_idx = remaining.rfind(" ", 0, limit + 1)
        if split_idx < limit * 0.3:
            split_idx = limit

        chunks.append(remaining[:split_idx])
        remaining = remaining[split_idx:].lstrip()

    return chunks
