"""Tests for the bridge REST client, using httpx.MockTransport."""
from __future__ import annotations

import json

import httpx
import pytest

from wa_assistant.transport import WhatsAppTransport


def make_transport(handler):
    client = httpx.Client(base_url="http://bridge.test", transport=httpx.MockTransport(handler))
    return WhatsAppTransport("http://bridge.test", client=client)


class TestSendText:
    def test_posts_recipient_and_message(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={"success": True})

        make_transport(handler).send_text("48123456789@s.whatsapp.net", "hi")

        assert requests[0].method == "POST"
        assert requests[0].url.path == "/api/send"
        assert json.loads(requests[0].content) == {"recipient": "48123456789@s.whatsapp.net", "message": "hi"}

    def test_error_status_raises(self):
        transport = make_transport(lambda request: httpx.Response(500, text="not connected"))
        with pytest.raises(httpx.HTTPStatusError):
            transport.send_text("48123456789@s.whatsapp.net", "hi")

    def test_connection_error_raises(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(httpx.ConnectError):
            make_transport(handler).send_text("48123456789@s.whatsapp.net", "hi")


class TestPresence:
    def test_states(self):
        bodies = []

        def handler(request):
            bodies.append(json.loads(request.content))
            return httpx.Response(200)

        transport = make_transport(handler)
        transport.set_presence("chat@s.whatsapp.net", composing=True)
        transport.set_presence("chat@s.whatsapp.net", composing=False)

        assert bodies == [
            {"chat_jid": "chat@s.whatsapp.net", "state": "composing"},
            {"chat_jid": "chat@s.whatsapp.net", "state": "paused"},
        ]

    def test_failure_swallowed(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        make_transport(handler).set_presence("chat@s.whatsapp.net", composing=True)


class TestHealth:
    def test_healthy(self):
        assert make_transport(lambda request: httpx.Response(200, json={"status": "ok"})).health() is True

    def test_bad_status(self):
        assert make_transport(lambda request: httpx.Response(503)).health() is False

    def test_unreachable(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        assert make_transport(handler).health() is False
