"""Admission, appointment and inbound message data models."""

from datetime import datetime
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field


class Intent(str, Enum):
    """Coarse classification of a free-text message."""
    ADMISSION_FLOW = "AdmissionFlow"
    ASK_FAQ = "AskFAQ"
    UNKNOWN = "Unknown"


class InboundMessage(BaseModel):
    """A single message received from a WhatsApp sender."""
    conversation_id: str
    body: str
    sent_at: datetime


class Slot(BaseModel):
    """A bookable half-hour meeting time."""
    slot_date: datetime
    section: str


class AdmissionRecord(BaseModel):
    """Admission record joined with its contact details."""
    id: int
    displayname: str
    grade: Optional[int] = None
    semester: Optional[int] = None
    referral: Optional[str] = None
    regdate: Optional[datetime] = None
    enrolled: bool = False
    email: Optional[str] = None
    mobile: Optional[str] = None
    mobile2: Optional[str] = None


class AppointmentRecord(BaseModel):
    """Booked meeting with the admissions office."""
    id: int
    student_id: int
    appdate: datetime
    purpose: Optional[str] = None
    host: Optional[str] = None
    type: Optional[str] = None
    forgrade: Optional[int] = None
    section: Optional[str] = None


class IdentityMatch(BaseModel):
    """A known guardian or student matched by phone number."""
    role: Literal["parent", "student"]
    data: dict[str, Any] = Field(default_factory=dict)
