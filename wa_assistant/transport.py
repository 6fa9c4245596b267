"""
Client for the local WhatsApp bridge REST API.

    POST /api/send    {"recipient": jid, "message": text}
    POST /api/typing  {"chat_jid": jid, "state": "composing" | "paused"}
    GET  /health

The bridge owns the WhatsApp connection (pairing, reconnects); this module
only sends. Inbound messages arrive on the webhook (webhook.py).
"""
from __future__ import annotations

import logging
from typing import Optional

import httpx

log = logging.getLogger(__name__)

SEND_TIMEOUT = 30.0
PRESENCE_TIMEOUT = 5.0


class WhatsAppTransport:
    def __init__(self, base_url: str, client: Optional[httpx.Client] = None):
        self.base_url = base_url.rstrip("/")
        self.client = client or httpx.Client(base_url=self.base_url)

    def send_text(self, recipient: str, text: str) -> None:
        """Send one message. Raises httpx.HTTPError if the bridge rejects it."""
        resp = self.client.post(
            "/api/send",
            json={"recipient": recipient, "message": text},
            timeout=SEND_TIMEOUT,
        )
        resp.raise_for_status()
        log.info(f"Sent WhatsApp message to {recipient} (status {resp.status_code}, {len(text)} chars)")

    def set_presence(self, chat_jid: str, composing: bool) -> None:
        """Typing indicator. Best-effort: failures are logged and ignored."""
        try:
            self.client.post(
                "/api/typing",
                json={"chat_jid": chat_jid, "state": "composing" if composing else "paused"},
                timeout=PRESENCE_TIMEOUT,
            )
        except httpx.HTTPError as e:
            log.debug(f"Failed to set typing indicator: {e}")

    def health(self) -> bool:
        try:
            resp = self.client.get("/health", timeout=PRESENCE_TIMEOUT)
        except httpx.HTTPError as e:
            log.warning(f"Bridge API health check failed: {e}")
            return False
        if resp.status_code != 200:
            log.warning(f"Bridge API health check failed: status {resp.status_code}")
            return False
        return True

    def close(self) -> None:
        self.client.close()
