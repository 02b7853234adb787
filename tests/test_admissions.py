"""Tests for admission persistence and identity lookup."""

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from admission_bot.models import Appointment, Guardian, Student, StudentContactInfo, UserMessage
from admission_bot.schemas.session_schema import AdmissionData
from tests.conftest import CONVERSATION_ID, FIXED_NOW, PHONE


def _data(**overrides) -> AdmissionData:
    values = dict(
        displayname="Jane Doe",
        email="jane@example.com",
        grade="Grade 7",
        semester="Semester 1",
        referral="Friend",
    )
    values.update(overrides)
    return AdmissionData(**values)


def _count(session_factory, model) -> int:
    with session_factory() as db:
        return db.execute(select(func.count()).select_from(model)).scalar_one()


class TestCreateAdmission:
    def test_creates_student_and_contact(self, admission_store, session_factory):
        student_id = admission_store.create_admission(_data(), PHONE)

        with session_factory() as db:
            student = db.get(Student, student_id)
            contact = db.execute(select(StudentContactInfo)).scalars().one()
        assert student.displayname == "Jane Doe"
        assert student.grade == 7
        assert student.semester == 1
        assert student.referral == "Friend"
        assert student.regdate == FIXED_NOW
        assert student.enrolled is False
        assert contact.student_id == student_id
        assert contact.email == "jane@example.com"
        assert contact.mobile == PHONE

    def test_ids_are_generated_by_the_store(self, admission_store):
        first = admission_store.create_admission(_data(), PHONE)
        second = admission_store.create_admission(_data(displayname="John Doe"), "+15550000000")
        assert second != first

    def test_read_admissions_by_phone(self, admission_store):
        admission_store.create_admission(_data(), PHONE)
        records = admission_store.read_admissions(PHONE)
        assert len(records) == 1
        assert records[0].email == "jane@example.com"
        assert records[0].grade == 7

    def test_phone_match_ignores_plus(self, admission_store):
        admission_store.create_admission(_data(), "15551234567")
        assert admission_store.find_open_admission(PHONE) is not None

    def test_failed_contact_insert_rolls_back_admission(self, admission_store, session_factory, monkeypatch):
        def broken_contact(**kwargs):
            raise SQLAlchemyError("contact table unavailable")

        monkeypatch.setattr("admission_bot.tools.admissions.StudentContactInfo", broken_contact)
        with pytest.raises(SQLAlchemyError):
            admission_store.create_admission(_data(), PHONE)
        monkeypatch.undo()
        assert _count(session_factory, Student) == 0


class TestFindOpenAdmission:
    def test_none_without_records(self, admission_store):
        assert admission_store.find_open_admission(PHONE) is None

    def test_latest_open_admission(self, admission_store):
        admission_store.create_admission(_data(displayname="First"), PHONE)
        admission_store.create_admission(_data(displayname="Second"), PHONE)
        assert admission_store.find_open_admission(PHONE).displayname == "Second"

    def test_enrolled_admission_ignored(self, admission_store, session_factory):
        student_id = admission_store.create_admission(_data(), PHONE)
        with session_factory.begin() as db:
            db.get(Student, student_id).enrolled = True
        assert admission_store.find_open_admission(PHONE) is None


class TestUpdateAndDelete:
    def test_update_overwrites_values(self, admission_store):
        student_id = admission_store.create_admission(_data(), PHONE)
        admission_store.update_admission(student_id, _data(grade="Grade 9", email="new@example.com"), PHONE)
        record = admission_store.find_open_admission(PHONE)
        assert record.id == student_id
        assert record.grade == 9
        assert record.email == "new@example.com"

    def test_update_missing_admission(self, admission_store):
        with pytest.raises(LookupError):
            admission_store.update_admission(404, _data(), PHONE)

    def test_delete_removes_everything(self, admission_store, appointment_book, session_factory):
        student_id = admission_store.create_admission(_data(), PHONE)
        slot = appointment_book.get_available_slots("Grade 7")[0]
        assert appointment_book.save_appointment(student_id, slot, "Grade 7")

        assert admission_store.delete_admission(PHONE) is True
        assert _count(session_factory, Student) == 0
        assert _count(session_factory, StudentContactInfo) == 0
        assert _count(session_factory, Appointment) == 0

    def test_delete_unknown_phone(self, admission_store):
        assert admission_store.delete_admission(PHONE) is False


class TestIdentityLookup:
    def test_guardian_matches_as_parent(self, admission_store, session_factory):
        with session_factory.begin() as db:
            db.add(Guardian(firstname="Mary", lastname="Doe", mobile=PHONE))
        match = admission_store.lookup_identity(PHONE)
        assert match.role == "parent"
        assert match.data["firstname"] == "Mary"

    def test_guardian_preferred_over_student(self, admission_store, session_factory):
        admission_store.create_admission(_data(), PHONE)
        with session_factory.begin() as db:
            db.add(Guardian(firstname="Mary", mobile=PHONE))
        assert admission_store.lookup_identity(PHONE).role == "parent"

    def test_student_contact_match(self, admission_store):
        admission_store.create_admission(_data(), PHONE)
        match = admission_store.lookup_identity(PHONE)
        assert match.role == "student"
        assert match.data["email"] == "jane@example.com"

    def test_secondary_mobile_matches(self, admission_store, session_factory):
        student_id = admission_store.create_admission(_data(), "+15550000000")
        with session_factory.begin() as db:
            contact = db.execute(
                select(StudentContactInfo).where(StudentContactInfo.student_id == student_id)
            ).scalars().one()
            contact.mobile2 = PHONE
        assert admission_store.lookup_identity(PHONE).role == "student"

    def test_unknown_phone(self, admission_store):
        assert admission_store.lookup_identity(PHONE) is None


class TestUserMessageAudit:
    def test_message_saved(self, admission_store, session_factory):
        admission_store.save_user_message(CONVERSATION_ID, "hello", FIXED_NOW)
        with session_factory() as db:
            row = db.execute(select(UserMessage)).scalars().one()
        assert (row.user_id, row.message, row.timestamp) == (CONVERSATION_ID, "hello", FIXED_NOW)

    def test_failure_is_logged_not_raised(self, admission_store, monkeypatch, caplog):
        def broken_message(**kwargs):
            raise SQLAlchemyError("disk full")

        monkeypatch.setattr("admission_bot.tools.admissions.UserMessage", broken_message)
        admission_store.save_user_message(CONVERSATION_ID, "hello", FIXED_NOW)
        assert "Error saving user message" in caplog.text
