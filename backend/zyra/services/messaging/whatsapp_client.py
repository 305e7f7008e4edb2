"""
WhatsApp Cloud API client - outbound messages and inbound payload parsing
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence, Tuple

import httpx

from zyra.infrastructure.settings import Settings, get_settings
from zyra.services.messaging.exceptions import MessagingError
from zyra.services.phone import normalize_phone

logger = logging.getLogger(__name__)

MAX_BUTTONS = 3
MAX_BUTTON_TITLE_LENGTH = 20


@dataclass(frozen=True)
class InboundChatMessage:
    """One inbound chat message; text is the button id for interactive replies"""
    message_id: str
    sender: str
    text: str


class WhatsAppClient:
    """
    Messaging gateway backed by the WhatsApp Cloud API (Graph API).

    When WHATSAPP_ACCESS_TOKEN / WHATSAPP_PHONE_NUMBER_ID are not configured the
    client logs outbound messages instead of sending them.
    """

    def __init__(self, settings: Optional[Settings] = None, http_client: Optional[httpx.Client] = None):
        self.settings = settings or get_settings()
        self._http = http_client or httpx.Client(timeout=self.settings.HTTP_TIMEOUT_SECONDS)

    @property
    def messages_url(self) -> str:
        base = self.settings.WHATSAPP_API_BASE_URL.rstrip("/")
        return f"{base}/{self.settings.WHATSAPP_API_VERSION}/{self.settings.WHATSAPP_PHONE_NUMBER_ID}/messages"

    def send_text(self, to: str, body: str) -> None:
        """Send a plain text message"""
        self._send(to, {
            "type": "text",
            "text": {"preview_url": False, "body": body},
        })

    def send_buttons(self, to: str, body: str, buttons: Sequence[Tuple[str, str]]) -> None:
        """
        Send an interactive message with 1-3 reply buttons.

        Args:
            to: Canonical recipient phone
            body: Message text shown above the buttons
            buttons: (id, label) pairs; labels are limited to 20 characters
        """
        if not 1 <= len(buttons) <= MAX_BUTTONS:
            raise ValueError(f"Interactive messages need between 1 and {MAX_BUTTONS} buttons")
        for _, label in buttons:
            if len(label) > MAX_BUTTON_TITLE_LENGTH:
                raise ValueError(f"Button label '{label}' exceeds {MAX_BUTTON_TITLE_LENGTH} characters")

        self._send(to, {
            "type": "interactive",
            "interactive": {
                "type": "button",
                "body": {"text": body},
                "action": {
                    "buttons": [
                        {"type": "reply", "reply": {"id": button_id, "title": label}}
                        for button_id, label in buttons
                    ]
                },
            },
        })

    def _send(self, to: str, message: Dict[str, Any]) -> None:
        # The Cloud API expects the recipient without the leading "+"
        recipient = normalize_phone(to).lstrip("+")
        payload = {
            "messaging_product": "whatsapp",
            "recipient_type": "individual",
            "to": recipient,
            **message,
        }

        if not self.settings.whatsapp_enabled:
            logger.info(f"WhatsApp not configured, message not sent: to={recipient}, type={message['type']}")
            return

        try:
            response = self._http.post(
                self.messages_url,
                json=payload,
                headers={"Authorization": f"Bearer {self.settings.WHATSAPP_ACCESS_TOKEN}"},
            )
        except httpx.HTTPError as e:
            logger.error(f"WhatsApp request failed: to={recipient}, error={e}")
            raise MessagingError(f"WhatsApp request failed: {e}") from e

        if response.status_code >= 400:
            logger.error(f"WhatsApp API error: to={recipient}, status={response.status_code}, body={response.text}")
            raise MessagingError(
                f"WhatsApp API returned {response.status_code}",
                status_code=response.status_code,
            )

        logger.info(f"WhatsApp message sent: to={recipient}, type={message['type']}")


def parse_inbound_message(payload: Dict[str, Any]) -> Optional[InboundChatMessage]:
    """
    Extract the first inbound message from a WhatsApp webhook payload.

    Returns None for deliveries that carry no user message (status updates,
    read receipts) or message types without text (images, locations).
    Interactive button replies resolve to the button id.
    """
    try:
        value = payload["entry"][0]["changes"][0]["value"]
    except (KeyError, IndexError, TypeError):
        return None

    messages = value.get("messages") if isinstance(value, dict) else None
    if not messages:
        return None

    message = messages[0]
    message_type = message.get("type")
    text = None
    if message_type == "text":
        text = (message.get("text") or {}).get("body")
    elif message_type == "interactive":
        interactive = message.get("interactive") or {}
        reply = interactive.get("button_reply") or interactive.get("list_reply") or {}
        text = reply.get("id")
    elif message_type == "button":
        text = (message.get("button") or {}).get("payload")

    sender = message.get("from")
    message_id = message.get("id")
    if not text or not sender or not message_id:
        return None

    return InboundChatMessage(
        message_id=message_id,
        sender=normalize_phone(sender),
        text=text,
    )
