"""FastAPI app receiving Twilio WhatsApp webhooks.

Twilio's inbound message webhook carries no send time, so each message is
stamped with the receipt time from ``clock``. Twilio does not replay a
backlog after a restart, so the stale-message guard only drops messages
when a transport supplies an earlier send time (or ``clock`` is skewed).
"""

import logging
from datetime import datetime
from typing import Callable

from fastapi import FastAPI, Form
from fastapi.responses import PlainTextResponse
from twilio.twiml.messaging_response import MessagingResponse

from admission_bot.conversation.controller import MessageController
from admission_bot.schemas.admission_schema import InboundMessage

logger = logging.getLogger(__name__)


def build_app(
    controller: MessageController,
    clock: Callable[[], datetime] = datetime.now,
) -> FastAPI:
    """Wire the controller behind ``POST /whatsapp``.

    Replies go out through the controller's messenger, so the webhook
    itself answers with an empty TwiML document.
    """
    app = FastAPI(title="Admission Bot")

    @app.get("/healthz")
    async def healthz() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/whatsapp", response_class=PlainTextResponse)
    async def whatsapp_webhook(
        From: str = Form(...),
        Body: str = Form(""),
    ) -> PlainTextResponse:
        message = InboundMessage(conversation_id=From.strip(), body=Body or "", sent_at=clock())
        await controller.handle_inbound(message)
        return PlainTextResponse(str(MessagingResponse()), media_type="application/xml")

    return app
