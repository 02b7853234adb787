"""
Finite state machine for deterministic admission conversation flow.

Defines the eleven admission states and the explicit transitions between
them. Every applicant follows a deterministic path through the state graph,
so probabilistic AI answers can only ever pick among allowed moves.

Usage:
    sm = ConversationStateMachine()
    sm.transition(TransitionTrigger.FIELD_ACCEPTED)
    assert sm.current_state == SessionState.ADMISSION_EMAIL
"""

import logging
from enum import Enum
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    """All possible states of an active admission session."""
    ADMISSION_DISPLAYNAME = "admission_displayname"
    ADMISSION_EMAIL = "admission_email"
    ADMISSION_GRADE = "admission_grade"
    ADMISSION_SEMESTER = "admission_semester"
    ADMISSION_REFERRAL = "admission_referral"
    ADMISSION_CONFIRM = "admission_confirm"
    ADMISSION_CHOOSE_DETAIL_TO_CHANGE = "admission_choose_detail_to_change"
    UPDATE_DETAIL = "update_detail"
    MEETING_OFFER = "meeting_offer"
    MEETING_SHOW_SLOTS = "meeting_show_slots"
    AWAITING_CONTINUE = "awaiting_continue"


class TransitionTrigger(str, Enum):
    """Events that cause state transitions."""
    FIELD_ACCEPTED = "field_accepted"
    DETAILS_CONFIRMED = "details_confirmed"
    DETAILS_REJECTED = "details_rejected"
    DETAIL_CHOSEN = "detail_chosen"
    DETAIL_UPDATED = "detail_updated"
    MEETING_ACCEPTED = "meeting_accepted"
    FAQ_DETOUR = "faq_detour"
    DETOUR_ENDED = "detour_ended"


@dataclass
class Transition:
    """A single valid state transition."""
    from_state: SessionState
    to_state: SessionState
    trigger: TransitionTrigger


@dataclass
class StateEntry:
    """Recorded history entry for a state visit."""
    state: SessionState
    entered_at: datetime
    trigger: Optional[TransitionTrigger] = None


class InvalidTransitionError(Exception):
    """Raised when a transition is not valid from the current state."""


COLLECTION_ORDER: list[SessionState] = [
    SessionState.ADMISSION_DISPLAYNAME,
    SessionState.ADMISSION_EMAIL,
    SessionState.ADMISSION_GRADE,
    SessionState.ADMISSION_SEMESTER,
    SessionState.ADMISSION_REFERRAL,
    SessionState.ADMISSION_CONFIRM,
]


class ConversationStateMachine:
    """
    Deterministic state machine controlling the admission conversation.

    Every transition must be explicitly defined. The FAQ detour is the only
    move whose target is dynamic: leaving ``awaiting_continue`` returns to
    whichever state was active when the detour began.
    """

    TRANSITIONS: list[Transition] = [
        # --- Collection chain ---
        *[
            Transition(current, following, TransitionTrigger.FIELD_ACCEPTED)
            for current, following in zip(COLLECTION_ORDER, COLLECTION_ORDER[1:])
        ],

        # --- Review gate ---
        Transition(SessionState.ADMISSION_CONFIRM, SessionState.MEETING_OFFER,
                   TransitionTrigger.DETAILS_CONFIRMED),
        Transition(SessionState.ADMISSION_CONFIRM, SessionState.ADMISSION_CHOOSE_DETAIL_TO_CHANGE,
                   TransitionTrigger.DETAILS_REJECTED),

        # --- Corrections ---
        Transition(SessionState.ADMISSION_CHOOSE_DETAIL_TO_CHANGE, SessionState.UPDATE_DETAIL,
                   TransitionTrigger.DETAIL_CHOSEN),
        Transition(SessionState.UPDATE_DETAIL, SessionState.ADMISSION_CONFIRM,
                   TransitionTrigger.DETAIL_UPDATED),
        Transition(SessionState.UPDATE_DETAIL, SessionState.ADMISSION_CHOOSE_DETAIL_TO_CHANGE,
                   TransitionTrigger.DETAILS_REJECTED),

        # --- Meeting ---
        Transition(SessionState.MEETING_OFFER, SessionState.MEETING_SHOW_SLOTS,
                   TransitionTrigger.MEETING_ACCEPTED),

        # --- FAQ detour, available from every other state ---
        *[
            Transition(state, SessionState.AWAITING_CONTINUE, TransitionTrigger.FAQ_DETOUR)
            for state in SessionState
            if state != SessionState.AWAITING_CONTINUE
        ],
    ]

    def __init__(self, initial_state: SessionState = SessionState.ADMISSION_DISPLAYNAME) -> None:
        self._current_state = SessionState(initial_state)
        self._previous_state: Optional[SessionState] = None
        self._history: list[StateEntry] = [
            StateEntry(state=self._current_state, entered_at=datetime.now(timezone.utc))
        ]

    @property
    def current_state(self) -> SessionState:
        return self._current_state

    @property
    def previous_state(self) -> Optional[SessionState]:
        """State to restore when an FAQ detour ends, if any."""
        return self._previous_state

    def _enter(self, state: SessionState, trigger: TransitionTrigger) -> SessionState:
        old_state = self._current_state
        self._current_state = state
        self._history.append(StateEntry(
            state=state,
            entered_at=datetime.now(timezone.utc),
            trigger=trigger,
        ))
        logger.debug(
            "State transition: %s -> %s (trigger: %s)",
            old_state.value, state.value, trigger.value,
        )
        return state

    def transition(self, trigger: TransitionTrigger) -> SessionState:
        """
        Execute a state transition.

        Args:
            trigger: The event triggering the transition.

        Returns:
            The new session state.

        Raises:
            InvalidTransitionError: If no valid transition exists.
        """
        if trigger == TransitionTrigger.FAQ_DETOUR:
            return self.begin_detour()
        if trigger == TransitionTrigger.DETOUR_ENDED:
            return self.end_detour()

        for t in self.TRANSITIONS:
            if t.from_state == self._current_state and t.trigger == trigger:
                return self._enter(t.to_state, trigger)

        valid = [t.value for t in self.get_valid_triggers()]
        raise InvalidTransitionError(
            f"No valid transition from '{self._current_state.value}' "
            f"with trigger '{trigger.value}'. Valid triggers: {valid}"
        )

    def begin_detour(self) -> SessionState:
        """Park the current state and move to ``awaiting_continue``."""
        if self._current_state == SessionState.AWAITING_CONTINUE:
            raise InvalidTransitionError("Already awaiting continuation after an FAQ answer")
        self._previous_state = self._current_state
        return self._enter(SessionState.AWAITING_CONTINUE, TransitionTrigger.FAQ_DETOUR)

    def end_detour(self) -> SessionState:
        """Restore the state that was active before the FAQ detour.

        Raises:
            InvalidTransitionError: If there is no detour to return from.
        """
        if self._current_state != SessionState.AWAITING_CONTINUE or self._previous_state is None:
            raise InvalidTransitionError(
                f"No FAQ detour to end from '{self._current_state.value}'"
            )
        restored = self._previous_state
        self._previous_state = None
        return self._enter(restored, TransitionTrigger.DETOUR_ENDED)

    def get_valid_triggers(self) -> list[TransitionTrigger]:
        """Return all triggers valid from the current state."""
        triggers = [t.trigger for t in self.TRANSITIONS if t.from_state == self._current_state]
        if self._current_state == SessionState.AWAITING_CONTINUE and self._previous_state is not None:
            triggers.append(TransitionTrigger.DETOUR_ENDED)
        return triggers

    def get_history(self) -> list[StateEntry]:
        """Return the full state transition history."""
        return list(self._history)

    def get_state_trace(self) -> list[str]:
        """Return ordered list of state names visited."""
        return [entry.state.value for entry in self._history]
