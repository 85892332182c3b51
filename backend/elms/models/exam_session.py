import uuid
from datetime import date, datetime
from enum import Enum

from sqlalchemy import Boolean, Date, DateTime, Enum as SAEnum, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from elms.db.base import Base
from elms.models.course import Course
from elms.models.venue import Room, Venue


class ExamStatus(str, Enum):
    DRAFT = "DRAFT"
    SCHEDULED = "SCHEDULED"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"


class SessionStatus(str, Enum):
    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class SessionOperation(str, Enum):
    CHECK_IN = "CHECK_IN"
    SUBMIT_SCRIPT = "SUBMIT_SCRIPT"
    ASSIGN_INVIGILATOR = "ASSIGN_INVIGILATOR"
    REPORT_INCIDENT = "REPORT_INCIDENT"


class ExamSession(Base):
    __tablename__ = "exam_sessions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    timetable_id: Mapped[str] = mapped_column(String(36), index=True, nullable=False)
    course_id: Mapped[str] = mapped_column(ForeignKey("courses.id"), nullable=False)
    venue_id: Mapped[str] = mapped_column(ForeignKey("venues.id"), nullable=False)
    exam_date: Mapped[date] = mapped_column(Date, index=True, nullable=False)
    start_time: Mapped[str] = mapped_column(String(5), nullable=False)
    end_time: Mapped[str] = mapped_column(String(5), nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[ExamStatus] = mapped_column(
        SAEnum(ExamStatus, name="exam_status"), nullable=False, default=ExamStatus.SCHEDULED
    )
    session_status: Mapped[SessionStatus] = mapped_column(
        SAEnum(SessionStatus, name="session_status"), nullable=False, default=SessionStatus.NOT_STARTED
    )
    expected_attendance: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    capacity_exceeded: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())

    course: Mapped[Course] = relationship()
    venue: Mapped[Venue] = relationship()
    rooms: Mapped[list["SessionRoom"]] = relationship(back_populates="session", cascade="all, delete-orphan")
    assignments: Mapped[list["InvigilatorAssignment"]] = relationship(
        back_populates="session", cascade="all, delete-orphan"
    )


class SessionRoom(Base):
    __tablename__ = "session_rooms"
    __table_args__ = (UniqueConstraint("exam_session_id", "room_id", name="uq_session_room"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    exam_session_id: Mapped[str] = mapped_column(ForeignKey("exam_sessions.id", ondelete="CASCADE"), nullable=False)
    room_id: Mapped[str] = mapped_column(ForeignKey("rooms.id"), nullable=False)
    # Overrides the room's declared capacity when set.
    allocated_capacity: Mapped[int | None] = mapped_column(Integer, nullable=True)

    session: Mapped[ExamSession] = relationship(back_populates="rooms")
    room: Mapped[Room] = relationship()


class InvigilatorAssignment(Base):
    __tablename__ = "invigilator_assignments"
    __table_args__ = (UniqueConstraint("invigilator_id", "exam_session_id", name="uq_invigilator_session"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    invigilator_id: Mapped[str] = mapped_column(String(36), index=True, nullable=False)
    exam_session_id: Mapped[str] = mapped_column(ForeignKey("exam_sessions.id", ondelete="CASCADE"), nullable=False)
    assigned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    session: Mapped[ExamSession] = relationship(back_populates="assignments")


class StudentRegistration(Base):
    __tablename__ = "student_registrations"
    __table_args__ = (UniqueConstraint("student_id", "exam_session_id", name="uq_student_session"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    student_id: Mapped[str] = mapped_column(String(36), index=True, nullable=False)
    exam_session_id: Mapped[str] = mapped_column(ForeignKey("exam_sessions.id", ondelete="CASCADE"), nullable=False)
    is_present: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    script_submitted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    seat_number: Mapped[str | None] = mapped_column(String(20), nullable=True)
    check_in_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
