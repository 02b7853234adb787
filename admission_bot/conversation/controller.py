"""
Message controller: the per-sender admission conversation.

Every inbound WhatsApp message passes through the guardrails, is audited,
and is then either dispatched to the handler for the sender's current
session state or, without a session, classified to start an admission,
answer an FAQ, or greet the sender.

Usage:
    controller = MessageController(ai, messenger, admissions, appointments,
                                   sessions, guardrails, faq_document)
    await controller.handle_inbound(InboundMessage(...))
"""

import asyncio
import json
import logging
import re
from datetime import datetime
from typing import Awaitable, Callable, Optional

from sqlalchemy.exc import SQLAlchemyError

from admission_bot.config import INTERACTION_LOGGER_NAME, SchedulingConfig, settings
from admission_bot.conversation.admission_fields import (
    extract_validated_value,
    field_by_name,
    field_for_detail,
    field_for_state,
    is_valid_verdict,
)
from admission_bot.conversation.guardrails import GuardrailPipeline
from admission_bot.conversation.session_store import SessionStore
from admission_bot.conversation.state_machine import (
    ConversationStateMachine,
    SessionState,
    TransitionTrigger,
)
from admission_bot.logging_context import conversation_scope, get_conversation_logger
from admission_bot.prompts.prompt_templates import (
    CHOOSE_DETAIL_PROMPT,
    CONTINUE_PROMPT,
    MEETING_OFFER_PROMPT,
    build_no_slots_message,
    build_review_prompt,
    build_slot_lines,
    build_slot_listing,
    build_upcoming_appointments,
    prompt_for_state,
)
from admission_bot.schemas.admission_schema import AdmissionRecord, AppointmentRecord, InboundMessage, Intent
from admission_bot.schemas.session_schema import AdmissionData, Session
from admission_bot.tools.admissions import AdmissionStore
from admission_bot.tools.ai_service import AIService
from admission_bot.tools.appointments import AppointmentBook
from admission_bot.tools.messaging import MessagingGateway
from admission_bot.utils import format_slot, phone_from_conversation_id

logger = get_conversation_logger(__name__)
interaction_logger = logging.getLogger(INTERACTION_LOGGER_NAME)

EXIT_COMMAND = "exit"

GREETING = "Hello! You can ask about admissions or any general question about the school."
PROCESS_COMPLETE = "Your admission process is complete. Let us know if you need anything else."
CANCELLED = "Admission process cancelled. You can start again anytime."
SAVE_FAILED = "There was a problem saving your data. Please try again later."
CONFIRM_NOT_UNDERSTOOD = "I did not understand. Are all details correct? (Yes/No)"
INVALID_DETAIL_CHOICE = "Please choose a valid detail: Name, Email, Grade, Semester, or Referral."
MEETING_NOT_UNDERSTOOD = "I did not understand. Would you like to schedule a meeting? (Yes/No)"
MEETING_DECLINED = "No worries! Let us know if you need anything else."
INVALID_SLOT = "Invalid slot number. Please choose one of the listed options."
SLOT_TAKEN = "Sorry, that slot just got booked. Please choose another slot number."
NO_SLOTS_REMAINING = "No available slots remaining in the next three days."
REPHRASE = "Could you please rephrase your question?"
DETOUR_ENDED_NO_STATE = "Let’s continue. How can I assist you?"

StateHandler = Callable[[Session, str], Awaitable[None]]


class MessageController:
    """Routes each inbound message through guardrails, sessions and state handlers."""

    def __init__(
        self,
        ai: AIService,
        messenger: MessagingGateway,
        admissions: AdmissionStore,
        appointments: AppointmentBook,
        sessions: SessionStore,
        guardrails: GuardrailPipeline,
        faq_document: str = "",
        scheduling: SchedulingConfig = settings.scheduling,
    ) -> None:
        self.ai = ai
        self.messenger = messenger
        self.admissions = admissions
        self.appointments = appointments
        self.sessions = sessions
        self.guardrails = guardrails
        self.faq_document = faq_document
        self.scheduling = scheduling
        # Serializes inbound messages across all senders.
        self._lock = asyncio.Lock()
        self._handlers: dict[SessionState, StateHandler] = {
            SessionState.ADMISSION_DISPLAYNAME: self._handle_collection,
            SessionState.ADMISSION_EMAIL: self._handle_collection,
            SessionState.ADMISSION_GRADE: self._handle_collection,
            SessionState.ADMISSION_SEMESTER: self._handle_collection,
            SessionState.ADMISSION_REFERRAL: self._handle_collection,
            SessionState.ADMISSION_CONFIRM: self._handle_confirm,
            SessionState.ADMISSION_CHOOSE_DETAIL_TO_CHANGE: self._handle_choose_detail,
            SessionState.UPDATE_DETAIL: self._handle_update_detail,
            SessionState.MEETING_OFFER: self._handle_meeting_offer,
            SessionState.MEETING_SHOW_SLOTS: self._handle_show_slots,
            SessionState.AWAITING_CONTINUE: self._handle_awaiting_continue,
        }

    # ------------------------------------------------------------------ #
    # Entry point
    # ------------------------------------------------------------------ #

    async def handle_inbound(self, message: InboundMessage) -> None:
        """Process one inbound message to completion before the next is admitted.

        Failures are logged and the message dropped.
        """
        async with self._lock:
            with conversation_scope(message.conversation_id):
                try:
                    await self._process(message)
                except Exception:
                    logger.exception("Error handling inbound message")

    async def _process(self, message: InboundMessage) -> None:
        cid = message.conversation_id
        for violation in self.guardrails.check_inbound(cid, message.sent_at):
            if violation.severity == "drop":
                logger.info("Ignoring message: %s", violation.message)
                return
            await self._send(cid, violation.message or "")
            return

        text = self.guardrails.sanitize(message.body)
        if not text:
            logger.debug("Empty message after sanitizing")
            return

        self.admissions.save_user_message(cid, text, message.sent_at)
        interaction_logger.info("%s - %s => %s", message.sent_at.isoformat(sep=" "), cid, text)

        session = self.sessions.get(cid)
        if session is None:
            self.sessions.purge_expired()
            await self._handle_new_conversation(cid, text)
            return

        if text.lower() == EXIT_COMMAND:
            self.sessions.delete(cid)
            await self._send(cid, CANCELLED)
            return
        if session.intent_disabled:
            await self._send(cid, PROCESS_COMPLETE)
            return
        await self._dispatch(session, text)

    async def _send(self, conversation_id: str, text: str) -> None:
        await self.messenger.send(conversation_id, text)

    def _end_session(self, session: Session) -> None:
        self.sessions.delete(session.conversation_id)
        logger.info("Session ended in state %s", session.state.value)

    # ------------------------------------------------------------------ #
    # Dispatch
    # ------------------------------------------------------------------ #

    async def _dispatch(self, session: Session, text: str) -> None:
        state = session.state
        if state != SessionState.AWAITING_CONTINUE:
            intent = await self.ai.determine_intent(text, state.value)
            if intent == Intent.ASK_FAQ:
                session.machine.begin_detour()
                await self._answer_faq(session.conversation_id, text)
                await self._send(session.conversation_id, CONTINUE_PROMPT)
                return
        await self._handlers[state](session, text)

    async def _answer_faq(self, conversation_id: str, question: str) -> None:
        answer = await self.ai.answer_question(question, self.faq_document)
        await self._send(conversation_id, answer or REPHRASE)

    async def _handle_new_conversation(self, cid: str, text: str) -> None:
        intent = await self.ai.determine_intent(text, "")
        logger.info("Determined intent %s for new conversation", intent.value)
        phone = phone_from_conversation_id(cid)

        if intent == Intent.ADMISSION_FLOW:
            upcoming = self._upcoming_appointments(phone)
            if upcoming:
                await self._send(cid, build_upcoming_appointments(upcoming))
            record = self.admissions.find_open_admission(phone)
            if record is not None:
                session = self._resume_session(cid, record)
                logger.info("Resuming admission %d", record.id)
            else:
                session = Session(conversation_id=cid)
            self.sessions.set(cid, session)
            await self._send(cid, prompt_for_state(session.state, session.data))
            return

        if intent == Intent.ASK_FAQ:
            session = Session(
                conversation_id=cid,
                machine=ConversationStateMachine(SessionState.AWAITING_CONTINUE),
            )
            self.sessions.set(cid, session)
            await self._answer_faq(cid, text)
            await self._send(cid, CONTINUE_PROMPT)
            return

        match = self.admissions.lookup_identity(phone)
        if match is None:
            await self._send(cid, GREETING)
            return
        details = json.dumps(match.data, indent=2, default=str)
        await self._send(cid, f"We found your info as a {match.role}:\n{details}")
        self.sessions.set(cid, Session(
            conversation_id=cid,
            machine=ConversationStateMachine(SessionState.AWAITING_CONTINUE),
        ))
        await self._send(cid, CONTINUE_PROMPT)

    def _upcoming_appointments(self, phone: str) -> list[AppointmentRecord]:
        """Future meetings booked for any admission linked to ``phone``."""
        upcoming: list[AppointmentRecord] = []
        for record in self.admissions.read_admissions(phone):
            upcoming.extend(self.appointments.get_future_appointments(record.id))
        return sorted(upcoming, key=lambda appointment: appointment.appdate)

    def _resume_session(self, cid: str, record: AdmissionRecord) -> Session:
        data = AdmissionData(
            displayname=record.displayname,
            email=record.email,
            grade=f"Grade {record.grade}" if record.grade is not None else None,
            semester=f"Semester {record.semester}" if record.semester is not None else None,
            referral=record.referral or "Unknown",
            student_id=record.id,
        )
        return Session(
            conversation_id=cid,
            machine=ConversationStateMachine(SessionState.ADMISSION_CONFIRM),
            data=data,
        )

    # ------------------------------------------------------------------ #
    # Admission form
    # ------------------------------------------------------------------ #

    async def _handle_collection(self, session: Session, text: str) -> None:
        defn = field_for_state(session.state)
        cid = session.conversation_id

        if defn.validated_locally:
            value = defn.parse(text)
            if value is None:
                await self._send(cid, defn.invalid_message)
                return
        else:
            verdict = await self.ai.validate_input(defn.validation_type, text)
            if not is_valid_verdict(verdict):
                await self._send(cid, verdict)
                return
            value = extract_validated_value(verdict, text)

        setattr(session.data, defn.name, value)
        session.machine.transition(TransitionTrigger.FIELD_ACCEPTED)
        await self._send(cid, prompt_for_state(session.state, session.data))

    async def _handle_confirm(self, session: Session, text: str) -> None:
        cid = session.conversation_id
        answer = await self.ai.interpret_yes_no(text)

        if answer == "yes":
            phone = phone_from_conversation_id(cid)
            try:
                if session.data.student_id is not None:
                    self.admissions.update_admission(session.data.student_id, session.data, phone)
                else:
                    session.data.student_id = self.admissions.create_admission(session.data, phone)
            except (SQLAlchemyError, LookupError):
                logger.exception("Failed to save admission")
                await self._send(cid, SAVE_FAILED)
                self._end_session(session)
                return
            session.machine.transition(TransitionTrigger.DETAILS_CONFIRMED)
            await self._send(cid, MEETING_OFFER_PROMPT)
        elif answer == "no":
            session.machine.transition(TransitionTrigger.DETAILS_REJECTED)
            await self._send(cid, CHOOSE_DETAIL_PROMPT)
        else:
            await self._send(cid, CONFIRM_NOT_UNDERSTOOD)

    async def _handle_choose_detail(self, session: Session, text: str) -> None:
        defn = field_for_detail(text)
        if defn is None:
            await self._send(session.conversation_id, INVALID_DETAIL_CHOICE)
            return
        session.data.detail_to_update = defn.name
        session.machine.transition(TransitionTrigger.DETAIL_CHOSEN)
        await self._send(session.conversation_id, f"Please provide your new {defn.label}.")

    async def _handle_update_detail(self, session: Session, text: str) -> None:
        cid = session.conversation_id
        if session.data.detail_to_update is None:
            session.machine.transition(TransitionTrigger.DETAILS_REJECTED)
            await self._send(cid, CHOOSE_DETAIL_PROMPT)
            return
        defn = field_by_name(session.data.detail_to_update)

        verdict = await self.ai.validate_input(defn.validation_type, text)
        if not is_valid_verdict(verdict):
            await self._send(cid, verdict)
            return
        value = extract_validated_value(verdict, text)
        if defn.validated_locally:
            value = defn.parse(value)
            if value is None:
                await self._send(cid, defn.invalid_message)
                return

        setattr(session.data, defn.name, value)
        session.data.detail_to_update = None
        session.machine.transition(TransitionTrigger.DETAIL_UPDATED)
        await self._send(cid, f"Thank you! Your {defn.label.lower()} has been updated to {value}.")
        await self._send(cid, build_review_prompt(session.data))

    # ------------------------------------------------------------------ #
    # Meeting scheduling
    # ------------------------------------------------------------------ #

    async def _handle_meeting_offer(self, session: Session, text: str) -> None:
        cid = session.conversation_id
        answer = await self.ai.interpret_yes_no(text)

        if answer == "yes":
            slots = self.appointments.get_available_slots(session.data.grade)
            if not slots:
                await self._send(cid, build_no_slots_message(self.scheduling))
                self._end_session(session)
                return
            session.data.slots_list = slots
            session.machine.transition(TransitionTrigger.MEETING_ACCEPTED)
            await self._send(cid, build_slot_listing(slots, self.scheduling))
        elif answer == "no":
            await self._send(cid, MEETING_DECLINED)
            self._end_session(session)
        else:
            await self._send(cid, MEETING_NOT_UNDERSTOOD)

    @staticmethod
    def _parse_choice(text: str) -> Optional[int]:
        match = re.fullmatch(r"\s*(\d+)\s*\.?\s*", text)
        return int(match.group(1)) if match else None

    async def _handle_show_slots(self, session: Session, text: str) -> None:
        cid = session.conversation_id
        slots = self.appointments.get_available_slots(session.data.grade)
        session.data.slots_list = slots
        choice = self._parse_choice(text)
        if choice is None or not 1 <= choice <= len(slots):
            await self._send(cid, INVALID_SLOT)
            return
        slot = slots[choice - 1]

        student_id = session.data.student_id
        if student_id is None:
            logger.error("Slot chosen without a saved admission")
            await self._send(cid, SAVE_FAILED)
            self._end_session(session)
            return

        existing = self.appointments.check_existing_appointment(student_id)
        if existing is not None:
            await self._send(cid, f"You already have an appointment on {format_slot(existing.appdate)}.")
            self._end_session(session)
            return

        if self.appointments.save_appointment(student_id, slot, session.data.grade):
            session.intent_disabled = True
            await self._send(cid, f"Your meeting is scheduled for {format_slot(slot.slot_date)}.")
            return

        await self._send(cid, SLOT_TAKEN)
        remaining = self.appointments.get_available_slots(session.data.grade)
        if not remaining:
            await self._send(cid, NO_SLOTS_REMAINING)
            self._end_session(session)
            return
        session.data.slots_list = remaining
        await self._send(cid, f"Here are the updated available slots:\n{build_slot_lines(remaining)}")

    # ------------------------------------------------------------------ #
    # FAQ detour
    # ------------------------------------------------------------------ #

    async def _handle_awaiting_continue(self, session: Session, text: str) -> None:
        cid = session.conversation_id
        intent = await self.ai.determine_intent(text, session.state.value)
        if intent == Intent.ASK_FAQ:
            await self._answer_faq(cid, text)
            return
        if session.previous_state is None:
            await self._send(cid, DETOUR_ENDED_NO_STATE)
            self._end_session(session)
            return
        restored = session.machine.end_detour()
        logger.info("Returning to %s after FAQ detour", restored.value)
        await self._send(cid, prompt_for_state(restored, session.data))
