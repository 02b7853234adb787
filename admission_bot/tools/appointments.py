"""
Meeting slot generation and appointment booking.

Slots are half-hour times inside the weekly meeting window, starting
tomorrow and running for the configured lookahead. A reservation relies on
the unique appointment time: when two applicants race for the same slot,
the second insert fails and the booking reports the slot as taken.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from admission_bot.config import SchedulingConfig, SchoolConfig, settings
from admission_bot.conversation.admission_fields import display_number
from admission_bot.models import Appointment
from admission_bot.schemas.admission_schema import AppointmentRecord, Slot

logger = logging.getLogger(__name__)

SECTION_BOUNDARY_GRADE = 3


def section_for_grade(grade: int) -> str:
    """Grades up to 3 meet with Section 1, everyone else with Section 2."""
    return "Section 1" if grade <= SECTION_BOUNDARY_GRADE else "Section 2"


def _to_record(row: Appointment) -> AppointmentRecord:
    return AppointmentRecord(
        id=row.id,
        student_id=row.student_id,
        appdate=row.appdate,
        purpose=row.purpose,
        host=row.host,
        type=row.type,
        forgrade=row.forgrade,
        section=row.section,
    )


class AppointmentBook:
    """Availability and reservations against the appointments table."""

    def __init__(
        self,
        session_factory: sessionmaker,
        scheduling: SchedulingConfig = settings.scheduling,
        school: SchoolConfig = settings.school,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._session_factory = session_factory
        self.scheduling = scheduling
        self.school = school
        self._clock = clock

    def _grade_number(self, grade: Optional[str]) -> int:
        number = display_number(grade)
        return number if number is not None else self.scheduling.default_grade

    def generate_candidate_slots(self) -> list[datetime]:
        """Every slot time in the window, booked or not, that is still in the future."""
        now = self._clock()
        first_day = (now + timedelta(days=1)).replace(hour=0, minute=0, second=0, microsecond=0)
        candidates: list[datetime] = []
        for offset in range(self.scheduling.lookahead_days):
            day = first_day + timedelta(days=offset)
            if day.weekday() not in self.scheduling.weekdays:
                continue
            for hour in range(self.scheduling.day_start_hour, self.scheduling.day_end_hour):
                for minute in range(0, 60, self.scheduling.slot_minutes):
                    moment = day.replace(hour=hour, minute=minute)
                    if moment > now:
                        candidates.append(moment)
        return candidates

    def get_available_slots(self, grade: Optional[str] = None) -> list[Slot]:
        """Open slots for an applicant of ``grade`` (``"Grade N"``), in time order."""
        section = section_for_grade(self._grade_number(grade))
        candidates = self.generate_candidate_slots()
        if not candidates:
            return []
        with self._session_factory() as db:
            booked = set(db.execute(
                select(Appointment.appdate).where(
                    Appointment.appdate >= candidates[0],
                    Appointment.appdate <= candidates[-1],
                )
            ).scalars())
        slots = [Slot(slot_date=moment, section=section) for moment in candidates if moment not in booked]
        logger.debug("Generated %d available slot(s)", len(slots))
        return slots

    def save_appointment(self, student_id: int, slot: Slot, grade: Optional[str] = None) -> bool:
        """Reserve ``slot`` for ``student_id``; False when it was taken meanwhile."""
        try:
            with self._session_factory.begin() as db:
                db.add(Appointment(
                    student_id=student_id,
                    appdate=slot.slot_date,
                    purpose=self.school.appointment_purpose,
                    host=self.school.appointment_host,
                    type=self.school.appointment_type,
                    forgrade=self._grade_number(grade),
                    section=slot.section,
                ))
        except IntegrityError:
            logger.info("Slot %s already booked", slot.slot_date.isoformat())
            return False
        except SQLAlchemyError as exc:
            logger.error("Error saving appointment for slot %s: %s", slot.slot_date.isoformat(), exc)
            return False
        logger.info("Booked slot %s for admission %d", slot.slot_date.isoformat(), student_id)
        return True

    def get_future_appointments(self, student_id: int) -> list[AppointmentRecord]:
        """All appointments for ``student_id`` from now on, earliest first."""
        with self._session_factory() as db:
            rows = db.execute(
                select(Appointment)
                .where(Appointment.student_id == student_id, Appointment.appdate >= self._clock())
                .order_by(Appointment.appdate)
            ).scalars().all()
            return [_to_record(row) for row in rows]

    def check_existing_appointment(self, student_id: int) -> Optional[AppointmentRecord]:
        """The earliest upcoming appointment for ``student_id``, if any."""
        upcoming = self.get_future_appointments(student_id)
        return upcoming[0] if upcoming else None
