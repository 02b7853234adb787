"""Outbound message construction for each admission state."""

from typing import Optional

from admission_bot.config import SchedulingConfig
from admission_bot.conversation.admission_fields import FIELDS, field_for_state
from admission_bot.conversation.state_machine import SessionState
from admission_bot.schemas.admission_schema import AppointmentRecord, Slot
from admission_bot.schemas.session_schema import AdmissionData
from admission_bot.utils import format_slot

NOT_PROVIDED = "Not provided"

CHOOSE_DETAIL_PROMPT = (
    "Which detail would you like to change? (Name, Email, Grade, Semester, Referral)"
)
MEETING_OFFER_PROMPT = (
    "Your admission is submitted. Would you like to schedule a meeting now? (Yes/No)"
)
CONTINUE_PROMPT = "How can I assist you further?"
SLOT_CHOICE_PROMPT = "Please choose a slot number:"

_DAY_NAMES = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]


def build_review_prompt(data: AdmissionData) -> str:
    """Read back every collected detail and ask for confirmation."""
    lines = ["Please review your details:"]
    for defn in FIELDS:
        value = getattr(data, defn.name) or NOT_PROVIDED
        lines.append(f"- {defn.label}: {value}")
    lines.append("")
    lines.append("Are all details correct? (Yes/No)")
    return "\n".join(lines)


def build_update_prompt(detail_name: Optional[str]) -> str:
    label = detail_name or "detail"
    for defn in FIELDS:
        if defn.name == detail_name:
            label = defn.label
    return f"Please provide the new value for {label}."


def build_slot_lines(slots: list[Slot]) -> str:
    """Number the slots from 1 in the order they are offered."""
    return "\n".join(
        f"{index}. {format_slot(slot.slot_date)}"
        for index, slot in enumerate(slots, start=1)
    )


def build_upcoming_appointments(appointments: list[AppointmentRecord]) -> str:
    """List meetings already booked for the sender, earliest first."""
    lines = "\n".join(
        f"{index}. {format_slot(appointment.appdate)}"
        for index, appointment in enumerate(appointments, start=1)
    )
    return f"I found the following upcoming appointment(s) scheduled for your number:\n{lines}"


def build_slot_listing(slots: list[Slot], scheduling: SchedulingConfig) -> str:
    """Full slot offer shown when the applicant accepts a meeting."""
    header = (
        f"Available slots (Tomorrow and the next {scheduling.lookahead_days - 1} days, "
        f"{_hour_label(scheduling.day_start_hour)}–{_hour_label(scheduling.day_end_hour)}, "
        f"every {scheduling.slot_minutes} min, {weekday_span(scheduling.weekdays)}):"
    )
    return f"{header}\n{build_slot_lines(slots)}\n{SLOT_CHOICE_PROMPT}"


def build_no_slots_message(scheduling: SchedulingConfig) -> str:
    return (
        "No available slots in the next three days "
        f"({weekday_span(scheduling.weekdays)}, "
        f"{scheduling.day_start_hour}:00–{scheduling.day_end_hour}:00)."
    )


def weekday_span(weekdays: tuple[int, ...]) -> str:
    """Describe the meeting week, Sunday first, e.g. ``"Sun–Thu"``."""
    ordered = sorted(weekdays, key=lambda day: (day + 1) % 7)
    if len(ordered) == 1:
        return _DAY_NAMES[ordered[0]]
    return f"{_DAY_NAMES[ordered[0]]}–{_DAY_NAMES[ordered[-1]]}"


def _hour_label(hour: int) -> str:
    display = hour % 12 or 12
    return f"{display}:00 {'AM' if hour < 12 else 'PM'}"


def prompt_for_state(state: SessionState, data: AdmissionData) -> str:
    """The message that (re)opens ``state`` for the applicant."""
    defn = field_for_state(state)
    if defn is not None:
        return defn.prompt
    if state == SessionState.ADMISSION_CONFIRM:
        return build_review_prompt(data)
    if state == SessionState.ADMISSION_CHOOSE_DETAIL_TO_CHANGE:
        return CHOOSE_DETAIL_PROMPT
    if state == SessionState.UPDATE_DETAIL:
        return build_update_prompt(data.detail_to_update)
    if state == SessionState.MEETING_OFFER:
        return MEETING_OFFER_PROMPT
    if state == SessionState.MEETING_SHOW_SLOTS:
        if data.slots_list:
            return f"{build_slot_lines(data.slots_list)}\n{SLOT_CHOICE_PROMPT}"
        return SLOT_CHOICE_PROMPT
    return CONTINUE_PROMPT
