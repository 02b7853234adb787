"""Per-sender conversational session state."""

from dataclasses import dataclass, field
from typing import Optional

from admission_bot.conversation.state_machine import ConversationStateMachine, SessionState
from admission_bot.schemas.admission_schema import Slot


@dataclass
class AdmissionData:
    """
    Values collected from the applicant so far.

    Grade and semester are kept in their display form ("Grade 7",
    "Semester 1"); the persistence layer stores the bare numbers.
    """
    displayname: Optional[str] = None
    email: Optional[str] = None
    grade: Optional[str] = None
    semester: Optional[str] = None
    referral: Optional[str] = None
    detail_to_update: Optional[str] = None
    student_id: Optional[int] = None
    slots_list: list[Slot] = field(default_factory=list)


@dataclass
class Session:
    """One sender's in-progress conversation. Never persisted."""
    conversation_id: str
    machine: ConversationStateMachine = field(default_factory=ConversationStateMachine)
    data: AdmissionData = field(default_factory=AdmissionData)
    intent_disabled: bool = False

    @property
    def state(self) -> SessionState:
        return self.machine.current_state

    @property
    def previous_state(self) -> Optional[SessionState]:
        return self.machine.previous_state
