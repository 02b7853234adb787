"""Tests for the Twilio WhatsApp webhook."""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import select

from admission_bot.models import UserMessage
from admission_bot.webhook import build_app
from tests.conftest import CONVERSATION_ID, FIXED_NOW, STARTED_AT


@pytest.fixture
def client(controller):
    return TestClient(build_app(controller, clock=lambda: FIXED_NOW))


class TestWebhook:
    def test_healthz(self, client):
        response = client.get("/healthz")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_inbound_message_answered_through_messenger(self, client, messenger, sessions):
        response = client.post("/whatsapp", data={"From": CONVERSATION_ID, "Body": "I want to apply"})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/xml")
        assert "<Response" in response.text
        assert messenger.texts() == ["Please provide your full name."]
        assert CONVERSATION_ID in sessions

    def test_missing_body_is_ignored(self, client, messenger):
        response = client.post("/whatsapp", data={"From": CONVERSATION_ID})
        assert response.status_code == 200
        assert messenger.sent == []

    def test_missing_sender_rejected(self, client, messenger):
        response = client.post("/whatsapp", data={"Body": "hello"})
        assert response.status_code == 422
        assert messenger.sent == []

    def test_messages_before_start_ignored(self, controller, messenger):
        client = TestClient(build_app(controller, clock=lambda: STARTED_AT.replace(year=2025)))
        response = client.post("/whatsapp", data={"From": CONVERSATION_ID, "Body": "I want to apply"})
        assert response.status_code == 200
        assert messenger.sent == []

    def test_message_stamped_with_receipt_time(self, client, session_factory):
        client.post("/whatsapp", data={"From": CONVERSATION_ID, "Body": "I want to apply"})
        with session_factory() as db:
            stamped = db.execute(select(UserMessage.timestamp)).scalar_one()
        assert stamped == FIXED_NOW
