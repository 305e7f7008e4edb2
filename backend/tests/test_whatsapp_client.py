"""
WhatsApp Cloud API client tests - outbound messages and inbound parsing
"""

import json

import httpx
import pytest

from zyra.infrastructure.settings import Settings
from zyra.services.messaging.exceptions import MessagingError
from zyra.services.messaging.whatsapp_client import WhatsAppClient, parse_inbound_message


def make_client(handler, **overrides) -> WhatsAppClient:
    values = dict(
        WHATSAPP_ACCESS_TOKEN="access-token",
        WHATSAPP_PHONE_NUMBER_ID="106540352242922",
        WHATSAPP_API_VERSION="v19.0",
    )
    values.update(overrides)
    return WhatsAppClient(
        settings=Settings(**values),
        http_client=httpx.Client(transport=httpx.MockTransport(handler)),
    )


@pytest.fixture
def sent():
    return []


@pytest.fixture
def ok_handler(sent):
    def handler(request: httpx.Request) -> httpx.Response:
        sent.append(request)
        return httpx.Response(200, json={"messages": [{"id": "wamid.out"}]})
    return handler


class TestOutbound:

    def test_send_text(self, ok_handler, sent):
        client = make_client(ok_handler)

        client.send_text("+254712345678", "Your balance is 42.50 XLM")

        request = sent[0]
        assert str(request.url) == "https://graph.facebook.com/v19.0/106540352242922/messages"
        assert request.headers["Authorization"] == "Bearer access-token"
        payload = json.loads(request.content)
        assert payload["messaging_product"] == "whatsapp"
        assert payload["to"] == "254712345678"
        assert payload["type"] == "text"
        assert payload["text"]["body"] == "Your balance is 42.50 XLM"

    def test_send_buttons(self, ok_handler, sent):
        client = make_client(ok_handler)

        client.send_buttons("+254712345678", "Welcome", [("deposit", "Deposit"), ("send", "Send")])

        payload = json.loads(sent[0].content)
        assert payload["type"] == "interactive"
        buttons = payload["interactive"]["action"]["buttons"]
        assert [b["reply"]["id"] for b in buttons] == ["deposit", "send"]
        assert [b["reply"]["title"] for b in buttons] == ["Deposit", "Send"]

    @pytest.mark.parametrize(
        "buttons",
        [
            [],
            [("a", "A"), ("b", "B"), ("c", "C"), ("d", "D")],
            [("long", "A label that is far too long")],
        ],
    )
    def test_invalid_buttons(self, ok_handler, sent, buttons):
        client = make_client(ok_handler)

        with pytest.raises(ValueError):
            client.send_buttons("+254712345678", "Welcome", buttons)

        assert sent == []

    def test_api_error_raises(self):
        client = make_client(lambda request: httpx.Response(401, json={"error": {"message": "Invalid OAuth access token"}}))

        with pytest.raises(MessagingError) as exc_info:
            client.send_text("+254712345678", "hi")

        assert exc_info.value.status_code == 401

    def test_unconfigured_client_does_not_send(self, ok_handler, sent):
        client = make_client(ok_handler, WHATSAPP_ACCESS_TOKEN="")

        client.send_text("+254712345678", "hi")

        assert sent == []


class TestInboundParsing:

    @staticmethod
    def payload(message: dict) -> dict:
        return {"entry": [{"changes": [{"value": {"messages": [message]}}]}]}

    def test_text_message(self):
        inbound = parse_inbound_message(self.payload({
            "from": "254712345678",
            "id": "wamid.1",
            "type": "text",
            "text": {"body": "balance"},
        }))

        assert inbound.message_id == "wamid.1"
        assert inbound.sender == "+254712345678"
        assert inbound.text == "balance"

    def test_button_reply_uses_button_id(self):
        inbound = parse_inbound_message(self.payload({
            "from": "254712345678",
            "id": "wamid.2",
            "type": "interactive",
            "interactive": {"type": "button_reply", "button_reply": {"id": "deposit", "title": "Deposit"}},
        }))

        assert inbound.text == "deposit"

    def test_image_message_is_skipped(self):
        assert parse_inbound_message(self.payload({
            "from": "254712345678",
            "id": "wamid.3",
            "type": "image",
            "image": {"id": "media-1"},
        })) is None

    @pytest.mark.parametrize("payload", [{}, {"entry": []}, {"entry": [{"changes": [{"value": {}}]}]}, []])
    def test_payloads_without_messages(self, payload):
        assert parse_inbound_message(payload) is None
