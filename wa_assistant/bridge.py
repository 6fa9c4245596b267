"""
Bridge process: the WhatsApp side of the queue.

Inbound:  webhook event -> filter -> enqueue (pending)
Outbound: completed responses, approved outbound requests, typing indicator

Delivery of queue responses is at-most-once. sent_at is stamped before the
first chunk goes out; if sending then fails the item stays marked sent and is
logged as "delivery uncertain" instead of being retried.
"""
from __future__ import annotations

import logging
import os
import re
import threading
import time
from typing import Callable, Optional

import uvicorn

from wa_assistant.common import (
    SYSTEM_SENDER,
    chunk_message,
    is_group_jid,
    is_lid,
    normalize_jid,
    phone_to_jid,
    truncate,
)
from wa_assistant.config import Settings
from wa_assistant.db import Database
from wa_assistant.message_queue import QueueItem, QueueStore
from wa_assistant.outbound import OutboundStore
from wa_assistant.scheduler import PollingLoop
from wa_assistant.transport import WhatsAppTransport
from wa_assistant.webhook import InboundEvent, create_app

log = logging.getLogger(__name__)
lifecycle_log = logging.getLogger("lifecycle")

CHUNK_PAUSE = 0.5


class InboundFilter:
    """Decides which webhook events become queue items."""

    def __init__(self, settings: Settings, queue: QueueStore):
        self.settings = settings
        self.queue = queue
        self._trigger = re.compile(rf"^{re.escape(settings.trigger_word)}\s*", re.IGNORECASE)
        self._owner = normalize_jid(settings.owner_jid)
        self._owner_lid = normalize_jid(settings.owner_lid) if settings.owner_lid else None

    def is_owner(self, jid: str) -> bool:
        jid = normalize_jid(jid)
        return jid == self._owner or (self._owner_lid is not None and jid == self._owner_lid)

    def accept(self, event: InboundEvent) -> Optional[int]:
        """Enqueue the event if it is for us. Returns the queue id or None."""
        chat_jid = event.chat_jid or event.sender
        raw = event.content or ""
        if not raw.strip() or not chat_jid:
            return None

        trigger = self._trigger.match(raw)
        triggered = trigger is not None and event.is_from_me

        if not triggered:
            if is_group_jid(chat_jid):
                return None
            if not self.is_owner(chat_jid):
                log.warning(f"Ignored message from non-owner: {chat_jid}")
                return None

        text = raw[trigger.end():].strip() if triggered else raw.strip()
        if not text:
            return None

        message_id = event.message_id or f"unknown-{int(time.time() * 1000)}"
        item_id = self.queue.enqueue(message_id, chat_jid, text)
        log.info(f"{'[trigger] ' if triggered else ''}Queued message {message_id} from {chat_jid}: {truncate(text, 100)}")
        return item_id


class DeliveryPoller:
    def __init__(
        self,
        settings: Settings,
        queue: QueueStore,
        outbound: OutboundStore,
        transport: WhatsAppTransport,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.settings = settings
        self.queue = queue
        self.outbound = outbound
        self.transport = transport
        self.sleep = sleep
        self.typing_jid: Optional[str] = None

    def recipient_for(self, sender_jid: str) -> str:
        """Where a response goes: the originating chat, or the owner for system/LID senders."""
        if sender_jid == SYSTEM_SENDER or is_lid(sender_jid):
            return normalize_jid(self.settings.owner_jid)
        return normalize_jid(sender_jid)

    def _send_chunks(self, recipient: str, text: str) -> int:
        chunks = chunk_message(text, self.settings.max_message_length)
        for i, chunk in enumerate(chunks):
            if i:
                self.sleep(CHUNK_PAUSE)
            self.transport.send_text(recipient, chunk)
        return len(chunks)

    def deliver(self, item: QueueItem) -> bool:
        """Send one completed item. Returns False if it was already stamped as sent."""
        if not self.queue.mark_delivered(item.id):
            return False

        recipient = self.recipient_for(item.sender_jid)
        try:
            count = self._send_chunks(recipient, item.response)
        except Exception as e:
            log.error(f"Failed to send response for message {item.id} (marked sent, delivery uncertain): {e}")
            return True
        log.info(f"Sent response for message {item.id} to {recipient} ({count} chunk(s))")
        return True

    def deliver_responses(self) -> int:
        delivered = 0
        for item in self.queue.undelivered():
            if self.deliver(item):
                delivered += 1
        return delivered

    def send_approved_outbound(self) -> int:
        sent = 0
        for request in self.outbound.approved():
            target = phone_to_jid(request.target_phone)
            try:
                self._send_chunks(target, request.message)
            except Exception as e:
                # Stays approved, retried next poll
                log.error(f"Failed to send outbound #{request.id}: {e}")
                continue
            self.outbound.mark_sent(request.id)
            lifecycle_log.info(f"OUTBOUND_SENT | #{request.id} -> {request.target_phone}")
            sent += 1
        return sent

    def update_typing(self) -> None:
        """Show 'composing' in the chat being processed; 'paused' once idle."""
        processing = self.queue.current_processing()
        if processing:
            target = self.recipient_for(processing.sender_jid)
            if self.typing_jid and self.typing_jid != target:
                self.transport.set_presence(self.typing_jid, composing=False)
            self.transport.set_presence(target, composing=True)
            self.typing_jid = target
        elif self.typing_jid:
            self.transport.set_presence(self.typing_jid, composing=False)
            self.typing_jid = None

    def poll(self) -> None:
        self.update_typing()
        self.deliver_responses()
        self.send_approved_outbound()


def run(settings: Settings, db: Database, stop: Optional[threading.Event] = None) -> None:
    """Bridge entry point: webhook server in the main thread, delivery on a worker thread."""
    stop = stop or threading.Event()
    queue = QueueStore(db)
    transport = WhatsAppTransport(settings.bridge_url)
    inbound = InboundFilter(settings, queue)
    poller = DeliveryPoller(settings, queue, OutboundStore(db), transport)

    lifecycle_log.info(f"BRIDGE_STARTED | pid={os.getpid()}")
    transport.health()

    loop = PollingLoop("delivery", poller.poll, settings.poll_interval, stop)
    worker = threading.Thread(target=loop.run, name="delivery", daemon=True)
    worker.start()

    server = uvicorn.Server(uvicorn.Config(
        create_app(inbound.accept),
        host=settings.webhook_host,
        port=settings.webhook_port,
        log_level="warning",
    ))
    try:
        server.run()
    finally:
        stop.set()
        worker.join()
        transport.close()
        lifecycle_log.info("BRIDGE_STOPPED")
