"""
Inbound webhook for the WhatsApp bridge.

Endpoints:
- POST /webhook - one inbound message; queued if it passes the filter
- GET /health   - liveness
"""
from __future__ import annotations

import logging
from typing import Callable, Optional

from fastapi import FastAPI
from pydantic import BaseModel

log = logging.getLogger(__name__)


class InboundEvent(BaseModel):
    sender: str = ""
    chat_jid: Optional[str] = None
    content: str = ""
    message_id: Optional[str] = None
    is_from_me: bool = False


class WebhookResponse(BaseModel):
    status: str
    queue_id: Optional[int] = None


def create_app(accept: Callable[[InboundEvent], Optional[int]]) -> FastAPI:
    """Build the webhook app around an accept callback (InboundFilter.accept)."""
    app = FastAPI(title="WhatsApp Assistant webhook")

    @app.get("/health")
    def health():
        return {"status": "ok"}

    # Sync handler: runs in the threadpool, off the event loop
    @app.post("/webhook", response_model=WebhookResponse)
    def webhook(event: InboundEvent):
        log.debug(f"Webhook received: sender={event.sender}, content={event.content[:80]}")
        queue_id = accept(event)
        if queue_id is None:
            return WebhookResponse(status="ignored")
        return WebhookResponse(status="queued", queue_id=queue_id)

    return app
