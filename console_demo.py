"""
Offline console demo: runs a full admission conversation without any API keys.

This drives the real message controller, state machine, guardrails and
SQLAlchemy stores against an in-memory SQLite database. The AI gateway is
replaced with keyword heuristics and replies are printed instead of being
sent over WhatsApp. No network calls.

Usage:
    python console_demo.py
    python console_demo.py --scenario admission
    python console_demo.py --scenario faq
"""

import argparse
import asyncio
import re
from datetime import datetime
from typing import Optional

from admission_bot.config import settings
from admission_bot.conversation.admission_fields import display_number, parse_semester
from admission_bot.conversation.controller import MessageController
from admission_bot.conversation.guardrails import GuardrailPipeline
from admission_bot.conversation.session_store import SessionStore
from admission_bot.db import build_engine, build_session_factory, init_db
from admission_bot.schemas.admission_schema import InboundMessage, Intent
from admission_bot.tools.admissions import AdmissionStore
from admission_bot.tools.ai_service import AIService
from admission_bot.tools.appointments import AppointmentBook
from admission_bot.tools.messaging import ConsoleMessenger

BLUE = "\033[94m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
RED = "\033[91m"
DIM = "\033[2m"
RESET = "\033[0m"
BOLD = "\033[1m"

DEMO_CONVERSATION_ID = "whatsapp:+15550100200"

DEMO_FAQ_DOCUMENT = """\
Tuition fees: Grades 1-3 pay 4,500 per semester; Grades 4-12 pay 5,200 per semester.
School hours: classes run Sunday to Thursday from 7:45 AM to 2:30 PM.
Campus: the main campus is on Ivy Avenue, next to the central library.
Admission deadline: applications for semester 1 close on August 15.
Transport: school buses cover all city districts for an annual fee.
Uniform: uniforms are sold at the school store on campus.
"""


class KeywordAIService(AIService):
    """Deterministic stand-in for the AI gateway, good enough for a demo."""

    FAQ_SIGNALS = ["?", "fee", "fees", "tuition", "hours", "campus", "where", "deadline",
                   "bus", "transport", "uniform", "what", "when", "how much"]
    ADMISSION_SIGNALS = ["apply", "admission", "enrol", "enroll", "register", "application"]
    REFERRALS = ["Twitter", "Facebook", "Instagram", "YouTube", "Friend", "Other"]
    YES_WORDS = {"yes", "y", "yeah", "yep", "sure", "ok", "okay", "correct", "please"}
    NO_WORDS = {"no", "n", "nope", "nah", "not now", "later"}

    def __init__(self) -> None:
        super().__init__(client=None)

    async def determine_intent(self, message: str, context: str = "") -> Intent:
        lower = message.lower()
        if any(signal in lower for signal in self.ADMISSION_SIGNALS):
            return Intent.ADMISSION_FLOW
        if any(signal in lower for signal in self.FAQ_SIGNALS):
            return Intent.ASK_FAQ
        # Inside an admission flow, everything else is an answer to the form.
        return Intent.ADMISSION_FLOW if context and context != "awaiting_continue" else Intent.UNKNOWN

    async def validate_input(self, validation_type: str, value: str) -> str:
        value = value.strip()
        if validation_type == "name":
            if len(value.split()) >= 2 and re.fullmatch(r"[A-Za-z .'\-]+", value):
                return f"valid {value.title()}"
            return "Please provide both your first and last name."
        if validation_type == "email":
            if re.fullmatch(r"[^@\s]+@[^@\s]+\.[a-z]{2,}", value, re.IGNORECASE):
                return f"valid {value.lower()}"
            return "That does not look like a valid email address."
        if validation_type == "grade_level":
            match = re.search(r"\d+", value)
            if match and 1 <= int(match.group()) <= 12:
                return f"valid {int(match.group())}"
            return "Grades must be between 1 and 12."
        if validation_type == "semester":
            semester = parse_semester(value)
            return f"valid {display_number(semester)}" if semester else "Semester must be 1 or 2."
        if validation_type == "referral_source":
            for source in self.REFERRALS:
                if source.lower() in value.lower():
                    return f"valid {source}"
            return "Please choose Twitter, Facebook, Instagram, YouTube, Friend or Other."
        return "valid"

    async def interpret_yes_no(self, message: str) -> str:
        lower = message.strip().lower().rstrip(".!")
        if lower in self.YES_WORDS:
            return "yes"
        if lower in self.NO_WORDS:
            return "no"
        return "unknown"

    async def answer_question(self, question: str, document: str = "") -> Optional[str]:
        words = {w for w in re.findall(r"[a-z]+", question.lower()) if len(w) > 3}
        for line in document.splitlines():
            if words & set(re.findall(r"[a-z]+", line.lower())):
                return f"- {line.strip()}"
        return None


class ConsoleSession:
    """Simulates a WhatsApp admission conversation in the terminal."""

    # Pre-scripted scenarios for --scenario flag
    SCENARIOS: dict[str, list[str]] = {
        "admission": [
            "Hi, I would like to apply for admission",
            "Jane Doe",
            "jane.doe@example.com",
            "Grade 5",
            "1",
            "A friend told me",
            "no",
            "email",
            "jane@example.com",
            "yes",
            "yes",
            "1",
            "thanks",
        ],
        "faq": [
            "What are the tuition fees?",
            "Where is the campus?",
            "thanks",
        ],
        "detour": [
            "I want to apply",
            "Sam Lee",
            "When is the deadline?",
            "ok",
            "sam.lee@example.com",
            "exit",
        ],
    }

    MAX_INPUT_LENGTH = 500

    def __init__(self, conversation_id: str = DEMO_CONVERSATION_ID) -> None:
        engine = build_engine("sqlite://")
        init_db(engine)
        session_factory = build_session_factory(engine)
        self.conversation_id = conversation_id
        self.messenger = ConsoleMessenger(prefix=f"{GREEN}{BOLD}[{settings.school.bot_name}]{RESET}")
        self.sessions = SessionStore()
        self.controller = MessageController(
            ai=KeywordAIService(),
            messenger=self.messenger,
            admissions=AdmissionStore(session_factory),
            appointments=AppointmentBook(session_factory),
            sessions=self.sessions,
            guardrails=GuardrailPipeline(started_at=datetime.now()),
            faq_document=DEMO_FAQ_DOCUMENT,
        )

    def system_log(self, text: str) -> None:
        print(f"{DIM}  >> {text}{RESET}")

    def _log_state(self) -> None:
        session = self.sessions.get(self.conversation_id)
        if session is None:
            self.system_log("No active session")
            return
        suffix = " (complete)" if session.intent_disabled else ""
        self.system_log(f"State: {session.state.value}{suffix}")

    async def send(self, text: str) -> None:
        await self.controller.handle_inbound(InboundMessage(
            conversation_id=self.conversation_id,
            body=text,
            sent_at=datetime.now(),
        ))
        self._log_state()

    def _banner(self, title: str) -> None:
        print()
        print(f"{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  ADMISSION BOT - {title}{RESET}")
        print(f"{BOLD}  School: {settings.school.name}{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")
        print()

    def run_scenario(self, scenario: str) -> None:
        """Auto-play a pre-scripted scenario for demo purposes."""
        steps = self.SCENARIOS.get(scenario)
        if not steps:
            print(f"{RED}Unknown scenario: {scenario}{RESET}")
            return

        self._banner(f"Scenario: {scenario}")

        async def play() -> None:
            for step in steps:
                print(f"\n{BLUE}[Applicant] {RESET}{step}")
                await self.send(step)

        asyncio.run(play())

        print(f"\n{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  Scenario '{scenario}' complete.{RESET}")
        print(f"{DIM}  Messages sent: {len(self.messenger.sent)}{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")

    def run(self) -> None:
        self._banner("Console Demo")
        print(f"{YELLOW}  Type 'quit' to leave the demo, 'exit' to cancel an admission.{RESET}")

        async def loop() -> None:
            while True:
                user_input = input(f"\n{BLUE}[Applicant] {RESET}").strip()
                if not user_input:
                    continue
                if user_input.lower() in ("quit", "q"):
                    print(f"\n{DIM}Session ended.{RESET}")
                    return
                if len(user_input) > self.MAX_INPUT_LENGTH:
                    print(f"{YELLOW}That was quite long. Could you keep it brief?{RESET}")
                    continue
                await self.send(user_input)

        asyncio.run(loop())


def main() -> None:
    parser = argparse.ArgumentParser(description="Offline console demo")
    parser.add_argument(
        "--scenario",
        choices=sorted(ConsoleSession.SCENARIOS),
        default=None,
        help="Auto-play a pre-scripted scenario instead of interactive mode",
    )
    args = parser.parse_args()

    session = ConsoleSession()
    if args.scenario:
        session.run_scenario(args.scenario)
    else:
        session.run()


if __name__ == "__main__":
    main()
