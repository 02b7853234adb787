"""
Admission form fields with a Collect -> Validate -> Store pattern.

Each field is bound to the collection state that asks for it. Grade and
semester are checked locally by pattern; name, email and referral are
checked by the AI validator, whose verdict is interpreted here.

Usage:
    field = field_for_state(SessionState.ADMISSION_GRADE)
    value = field.parse("Grade 7")   # -> "Grade 7"
"""

import logging
import re
from dataclasses import dataclass
from typing import Callable, Optional

from admission_bot.conversation.state_machine import SessionState

logger = logging.getLogger(__name__)

GRADE_PATTERN = re.compile(r"(\d+)")
SEMESTER_PATTERN = re.compile(r"^\s*(?:semester\s*)?([12])\s*$", re.IGNORECASE)


def parse_grade(text: str) -> Optional[str]:
    """Return ``"Grade N"`` for the first number in ``text``, else None."""
    match = GRADE_PATTERN.search(text or "")
    if not match:
        return None
    return f"Grade {int(match.group(1))}"


def parse_semester(text: str) -> Optional[str]:
    """Return ``"Semester 1"`` or ``"Semester 2"``, else None."""
    match = SEMESTER_PATTERN.match(text or "")
    if not match:
        return None
    return f"Semester {match.group(1)}"


def display_number(value: Optional[str]) -> Optional[int]:
    """Pull the number back out of a display value such as ``"Grade 7"``."""
    if not value:
        return None
    match = GRADE_PATTERN.search(value)
    return int(match.group(1)) if match else None


def is_valid_verdict(response: Optional[str]) -> bool:
    """An AI verdict accepts the input when it is ``valid`` or starts with ``valid ``."""
    if not response:
        return False
    verdict = response.strip().lower()
    return verdict == "valid" or verdict.startswith("valid ")


def extract_validated_value(response: str, raw_value: str) -> str:
    """Prefer the normalized value the validator returned after ``valid``."""
    verdict = response.strip()
    if verdict.lower().startswith("valid "):
        normalized = verdict[len("valid "):].strip()
        if normalized:
            return normalized
    return raw_value.strip()


@dataclass(frozen=True)
class AdmissionField:
    """Schema for a single admission detail to collect."""

    name: str
    label: str
    state: SessionState
    prompt: str
    validation_type: str
    parser: Optional[Callable[[str], Optional[str]]] = None
    invalid_message: str = ""

    @property
    def validated_locally(self) -> bool:
        return self.parser is not None

    def parse(self, text: str) -> Optional[str]:
        """Apply the local pattern check, if this field has one."""
        if self.parser is None:
            return text.strip() or None
        return self.parser(text)


FIELDS: list[AdmissionField] = [
    AdmissionField(
        name="displayname",
        label="Name",
        state=SessionState.ADMISSION_DISPLAYNAME,
        prompt="Please provide your full name.",
        validation_type="name",
    ),
    AdmissionField(
        name="email",
        label="Email",
        state=SessionState.ADMISSION_EMAIL,
        prompt="What is your email address?",
        validation_type="email",
    ),
    AdmissionField(
        name="grade",
        label="Grade",
        state=SessionState.ADMISSION_GRADE,
        prompt="For which grade are you applying? (e.g., Grade 3)",
        validation_type="grade_level",
        parser=parse_grade,
        invalid_message="Invalid grade. Please try again.",
    ),
    AdmissionField(
        name="semester",
        label="Semester",
        state=SessionState.ADMISSION_SEMESTER,
        prompt="Which semester are you applying for? (1 or 2)",
        validation_type="semester",
        parser=parse_semester,
        invalid_message="Invalid semester. Please try again.",
    ),
    AdmissionField(
        name="referral",
        label="Referral",
        state=SessionState.ADMISSION_REFERRAL,
        prompt="How did you hear about us? (Twitter, Facebook, Instagram, YouTube, Friend, Other)",
        validation_type="referral_source",
    ),
]


def field_for_state(state: SessionState) -> Optional[AdmissionField]:
    """Return the field collected in ``state``, if it is a collection state."""
    for defn in FIELDS:
        if defn.state == state:
            return defn
    return None


def field_by_name(name: str) -> AdmissionField:
    for defn in FIELDS:
        if defn.name == name:
            return defn
    raise ValueError(f"Unknown admission field: {name}")


def field_for_detail(text: str) -> Optional[AdmissionField]:
    """Match the applicant's choice of detail to change, e.g. ``"email"``."""
    words = set(re.findall(r"[a-z]+", (text or "").lower()))
    for defn in FIELDS:
        if defn.label.lower() in words:
            return defn
    logger.debug("No admission field matches %r", text)
    return None
