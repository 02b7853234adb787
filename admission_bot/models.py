"""Relational tables backing admissions, contacts, guardians and appointments."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class Guardian(Base):
    __tablename__ = "guardian"
    id: Mapped[int] = mapped_column(primary_key=True)
    firstname: Mapped[str | None] = mapped_column(String(120), nullable=True)
    lastname: Mapped[str | None] = mapped_column(String(120), nullable=True)
    mobile: Mapped[str | None] = mapped_column(String(40), index=True, nullable=True)
    email: Mapped[str | None] = mapped_column(String(200), nullable=True)


class Student(Base):
    """Admission record. Created on a confirmed submission."""

    __tablename__ = "student"
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    displayname: Mapped[str] = mapped_column(String(200))
    grade: Mapped[int | None] = mapped_column(Integer, nullable=True)
    semester: Mapped[int | None] = mapped_column(Integer, nullable=True)
    referral: Mapped[str | None] = mapped_column(String(120), nullable=True)
    regdate: Mapped[datetime] = mapped_column(DateTime)
    enrolled: Mapped[bool] = mapped_column(Boolean, default=False)


class StudentContactInfo(Base):
    __tablename__ = "studentcontactinfo"
    id: Mapped[int] = mapped_column(primary_key=True)
    student_id: Mapped[int] = mapped_column(ForeignKey("student.id", ondelete="CASCADE"), index=True)
    email: Mapped[str | None] = mapped_column(String(200), nullable=True)
    mobile: Mapped[str | None] = mapped_column(String(40), index=True, nullable=True)
    mobile2: Mapped[str | None] = mapped_column(String(40), index=True, nullable=True)


class Appointment(Base):
    """A booked meeting. The unique slot time makes a reservation atomic."""

    __tablename__ = "appointments"
    id: Mapped[int] = mapped_column(primary_key=True)
    student_id: Mapped[int] = mapped_column(ForeignKey("student.id", ondelete="CASCADE"), index=True)
    appdate: Mapped[datetime] = mapped_column(DateTime, unique=True)
    purpose: Mapped[str | None] = mapped_column(String(200), nullable=True)
    host: Mapped[str | None] = mapped_column(String(120), nullable=True)
    type: Mapped[str | None] = mapped_column(String(60), nullable=True)
    forgrade: Mapped[int | None] = mapped_column(Integer, nullable=True)
    section: Mapped[str | None] = mapped_column(String(40), nullable=True)


class UserMessage(Base):
    __tablename__ = "user_messages"
    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[str] = mapped_column(String(80), index=True)
    message: Mapped[str] = mapped_column(Text)
    timestamp: Mapped[datetime] = mapped_column(DateTime)
