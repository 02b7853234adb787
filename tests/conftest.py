"""Shared test fixtures and helpers."""

import os
import tempfile
from datetime import datetime, timedelta
from typing import Optional

os.environ.setdefault(
    "INTERACTION_LOG_PATH",
    os.path.join(tempfile.gettempdir(), "admission_bot_test_interactions.log"),
)

import pytest

from admission_bot.config import SchedulingConfig, SchoolConfig
from admission_bot.conversation.controller import MessageController
from admission_bot.conversation.guardrails import GuardrailPipeline, RateLimiter
from admission_bot.conversation.session_store import SessionStore
from admission_bot.conversation.state_machine import ConversationStateMachine
from admission_bot.db import build_engine, build_session_factory, init_db
from admission_bot.schemas.admission_schema import InboundMessage, Intent
from admission_bot.tools.admissions import AdmissionStore
from admission_bot.tools.appointments import AppointmentBook
from admission_bot.tools.messaging import MessagingGateway

# A Saturday: the next three days are Sunday to Tuesday, all meeting days.
FIXED_NOW = datetime(2026, 10, 17, 10, 0)
STARTED_AT = FIXED_NOW - timedelta(hours=1)
CONVERSATION_ID = "whatsapp:+15551234567"
PHONE = "+15551234567"

SCHEDULING = SchedulingConfig(
    lookahead_days=3,
    day_start_hour=8,
    day_end_hour=15,
    slot_minutes=30,
    weekdays=(6, 0, 1, 2, 3),
    default_grade=4,
)
SCHOOL = SchoolConfig(
    name="IVY International School",
    bot_name="Ivy Bot",
    faq_document_path="input.txt",
    appointment_host="IvyBot",
    appointment_purpose="Admission Inquiry",
    appointment_type="Admission",
)


class ManualClock:
    """Monotonic clock the test advances by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeAIService:
    """Scriptable AI gateway: form answers pass, chosen messages are FAQs."""

    def __init__(self) -> None:
        self.intents: dict[str, Intent] = {}
        self.default_intent = Intent.ADMISSION_FLOW
        self.rejections: dict[str, str] = {}
        self.faq_answer: Optional[str] = "- Tuition is 5,200 per semester."
        self.intent_calls: list[tuple[str, str]] = []
        self.validation_calls: list[tuple[str, str]] = []

    async def determine_intent(self, message: str, context: str = "") -> Intent:
        self.intent_calls.append((message, context))
        return self.intents.get(message, self.default_intent)

    async def validate_input(self, validation_type: str, value: str) -> str:
        self.validation_calls.append((validation_type, value))
        if value in self.rejections:
            return self.rejections[value]
        if validation_type in ("grade_level", "semester"):
            digits = "".join(ch for ch in value if ch.isdigit())
            return f"valid {digits}" if digits else f"Invalid {validation_type}."
        if validation_type == "email":
            return f"valid {value.strip().lower()}"
        return f"valid {value.strip()}"

    async def interpret_yes_no(self, message: str) -> str:
        lower = message.strip().lower()
        return lower if lower in ("yes", "no") else "unknown"

    async def answer_question(self, question: str, document: str = "") -> Optional[str]:
        return self.faq_answer


class RecordingMessenger(MessagingGateway):
    """Keeps every outbound message instead of delivering it."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str]] = []

    async def send(self, conversation_id: str, text: str) -> None:
        self.sent.append((conversation_id, text))

    def texts(self, conversation_id: str = CONVERSATION_ID) -> list[str]:
        return [text for cid, text in self.sent if cid == conversation_id]

    @property
    def last(self) -> str:
        return self.sent[-1][1]

    def clear(self) -> None:
        self.sent.clear()


@pytest.fixture
def state_machine():
    return ConversationStateMachine()


@pytest.fixture
def engine():
    engine = build_engine("sqlite://")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def admission_store(session_factory):
    return AdmissionStore(session_factory, clock=lambda: FIXED_NOW)


@pytest.fixture
def appointment_book(session_factory):
    return AppointmentBook(session_factory, SCHEDULING, SCHOOL, clock=lambda: FIXED_NOW)


@pytest.fixture
def rate_clock():
    return ManualClock()


@pytest.fixture
def fake_ai():
    return FakeAIService()


@pytest.fixture
def messenger():
    return RecordingMessenger()


@pytest.fixture
def sessions():
    return SessionStore()


@pytest.fixture
def controller(fake_ai, messenger, admission_store, appointment_book, sessions, rate_clock):
    guardrails = GuardrailPipeline(
        started_at=STARTED_AT,
        rate_limiter=RateLimiter(max_messages=100, window_seconds=60, clock=rate_clock),
    )
    return MessageController(
        ai=fake_ai,
        messenger=messenger,
        admissions=admission_store,
        appointments=appointment_book,
        sessions=sessions,
        guardrails=guardrails,
        faq_document="Tuition: 5,200 per semester.",
        scheduling=SCHEDULING,
    )


def make_message(
    body: str,
    conversation_id: str = CONVERSATION_ID,
    sent_at: datetime = FIXED_NOW,
) -> InboundMessage:
    """Helper to create an InboundMessage."""
    return InboundMessage(conversation_id=conversation_id, body=body, sent_at=sent_at)


async def say(controller: MessageController, *bodies: str, conversation_id: str = CONVERSATION_ID) -> None:
    """Send one or more messages from the same sender in order."""
    for body in bodies:
        await controller.handle_inbound(make_message(body, conversation_id))


FULL_ADMISSION = (
    "I want to apply",
    "Jane Doe",
    "Jane@Example.com",
    "Grade 7",
    "1",
    "Friend",
)
