"""
Outbound message delivery to WhatsApp conversations.

The controller only depends on :class:`MessagingGateway`; the Twilio
adapter is used in production and the console adapter in the offline demo.
Delivery failures are logged and never propagate into the conversation.
"""

import asyncio
import logging
from typing import Optional

from twilio.base.exceptions import TwilioException
from twilio.rest import Client

from admission_bot.config import MessagingConfig, settings

logger = logging.getLogger(__name__)


class MessagingGateway:
    """Base outbound channel."""

    async def send(self, conversation_id: str, text: str) -> None:
        raise NotImplementedError


class TwilioMessenger(MessagingGateway):
    """Sends WhatsApp messages through the Twilio REST API."""

    def __init__(
        self,
        config: MessagingConfig = settings.messaging,
        client: Optional[Client] = None,
    ) -> None:
        self.config = config
        self._client = client

    @property
    def client(self) -> Client:
        if self._client is None:
            self._client = Client(self.config.account_sid, self.config.auth_token)
        return self._client

    def _to_address(self, conversation_id: str) -> str:
        if conversation_id.startswith("whatsapp:"):
            return conversation_id
        return f"whatsapp:{conversation_id}"

    async def send(self, conversation_id: str, text: str) -> None:
        if not (self.config.account_sid and self.config.auth_token and self.config.whatsapp_from):
            logger.warning("Twilio credentials missing; dropping outbound message")
            return
        try:
            await asyncio.to_thread(
                self.client.messages.create,
                body=text,
                from_=self._to_address(self.config.whatsapp_from),
                to=self._to_address(conversation_id),
            )
        except TwilioException as exc:
            logger.error("Failed to deliver WhatsApp message: %s", exc)


class ConsoleMessenger(MessagingGateway):
    """Prints replies to the terminal and keeps a transcript."""

    def __init__(self, prefix: str = "[Bot]") -> None:
        self.prefix = prefix
        self.sent: list[tuple[str, str]] = []

    async def send(self, conversation_id: str, text: str) -> None:
        self.sent.append((conversation_id, text))
        print(f"{self.prefix} {text}")
