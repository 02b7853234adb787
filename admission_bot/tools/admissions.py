"""
Admission, contact and identity persistence.

Backed by SQLAlchemy sessions from an injected factory. Writes raise
``SQLAlchemyError`` so the conversation can apologise and drop the session;
the audit trail write is the exception and only logs its failures.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Optional

from sqlalchemy import delete, inspect, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from admission_bot.conversation.admission_fields import display_number
from admission_bot.models import Appointment, Guardian, Student, StudentContactInfo, UserMessage
from admission_bot.schemas.admission_schema import AdmissionRecord, IdentityMatch
from admission_bot.schemas.session_schema import AdmissionData

logger = logging.getLogger(__name__)


def _phone_variants(phone: str) -> list[str]:
    """Stored numbers may or may not carry the leading ``+``."""
    bare = phone.lstrip("+")
    return list(dict.fromkeys([phone, bare, f"+{bare}"]))


def _row_to_dict(row: Any) -> dict[str, Any]:
    return {attr.key: getattr(row, attr.key) for attr in inspect(row).mapper.column_attrs}


def _to_record(student: Student, contact: StudentContactInfo) -> AdmissionRecord:
    return AdmissionRecord(
        id=student.id,
        displayname=student.displayname,
        grade=student.grade,
        semester=student.semester,
        referral=student.referral,
        regdate=student.regdate,
        enrolled=student.enrolled,
        email=contact.email,
        mobile=contact.mobile,
        mobile2=contact.mobile2,
    )


class AdmissionStore:
    """Reads and writes admission records keyed by the applicant's phone."""

    def __init__(
        self,
        session_factory: sessionmaker,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock

    def save_user_message(self, user_id: str, message: str, timestamp: datetime) -> None:
        """Append an inbound message to the audit table. Never raises."""
        try:
            with self._session_factory.begin() as db:
                db.add(UserMessage(user_id=user_id, message=message, timestamp=timestamp))
        except SQLAlchemyError as exc:
            logger.error("Error saving user message: %s", exc)

    def _contact_filter(self, phone: str):
        variants = _phone_variants(phone)
        return or_(StudentContactInfo.mobile.in_(variants), StudentContactInfo.mobile2.in_(variants))

    def read_admissions(self, phone: str) -> list[AdmissionRecord]:
        """Every admission record whose contact matches ``phone``."""
        with self._session_factory() as db:
            rows = db.execute(
                select(Student, StudentContactInfo)
                .join(StudentContactInfo, StudentContactInfo.student_id == Student.id)
                .where(self._contact_filter(phone))
                .order_by(Student.id)
            ).all()
            return [_to_record(student, contact) for student, contact in rows]

    def find_open_admission(self, phone: str) -> Optional[AdmissionRecord]:
        """The most recent not-yet-enrolled admission for ``phone``, if any."""
        with self._session_factory() as db:
            row = db.execute(
                select(Student, StudentContactInfo)
                .join(StudentContactInfo, StudentContactInfo.student_id == Student.id)
                .where(self._contact_filter(phone), Student.enrolled.is_(False))
                .order_by(Student.id.desc())
                .limit(1)
            ).first()
            if row is None:
                return None
            return _to_record(*row)

    def create_admission(self, data: AdmissionData, phone: str) -> int:
        """Insert the admission and its contact row in one transaction.

        Returns:
            The store-generated admission id.
        """
        with self._session_factory.begin() as db:
            student = Student(
                displayname=data.displayname or "",
                grade=display_number(data.grade),
                semester=display_number(data.semester),
                referral=data.referral,
                regdate=self._clock(),
                enrolled=False,
            )
            db.add(student)
            db.flush()
            db.add(StudentContactInfo(student_id=student.id, email=data.email, mobile=phone))
            student_id = student.id
        logger.info("Admission %d created", student_id)
        return student_id

    def update_admission(self, student_id: int, data: AdmissionData, phone: str) -> None:
        """Overwrite a resumed admission with the reviewed values."""
        with self._session_factory.begin() as db:
            student = db.get(Student, student_id)
            if student is None:
                raise LookupError(f"Admission {student_id} no longer exists")
            student.displayname = data.displayname or student.displayname
            student.grade = display_number(data.grade)
            student.semester = display_number(data.semester)
            student.referral = data.referral
            contact = db.execute(
                select(StudentContactInfo).where(StudentContactInfo.student_id == student_id)
            ).scalars().first()
            if contact is None:
                db.add(StudentContactInfo(student_id=student_id, email=data.email, mobile=phone))
            else:
                contact.email = data.email
        logger.info("Admission %d updated", student_id)

    def delete_admission(self, phone: str) -> bool:
        """Remove the admission linked to ``phone``; False when none exists."""
        with self._session_factory.begin() as db:
            student_id = db.execute(
                select(StudentContactInfo.student_id).where(self._contact_filter(phone)).limit(1)
            ).scalar()
            if student_id is None:
                return False
            db.execute(delete(Appointment).where(Appointment.student_id == student_id))
            db.execute(delete(StudentContactInfo).where(StudentContactInfo.student_id == student_id))
            db.execute(delete(Student).where(Student.id == student_id))
        logger.info("Admission %d deleted", student_id)
        return True

    def lookup_identity(self, phone: str) -> Optional[IdentityMatch]:
        """Match ``phone`` against guardians first, then student contacts."""
        variants = _phone_variants(phone)
        with self._session_factory() as db:
            guardian = db.execute(
                select(Guardian).where(Guardian.mobile.in_(variants)).limit(1)
            ).scalars().first()
            if guardian is not None:
                return IdentityMatch(role="parent", data=_row_to_dict(guardian))
            contact = db.execute(
                select(StudentContactInfo).where(self._contact_filter(phone)).limit(1)
            ).scalars().first()
            if contact is not None:
                return IdentityMatch(role="student", data=_row_to_dict(contact))
        return None
