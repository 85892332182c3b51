from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload, selectinload

from elms.core.exceptions import RepositoryError
from elms.models.exam_session import ExamSession, InvigilatorAssignment, SessionRoom, StudentRegistration
from elms.schemas.exam_session import (
    ExamSessionPayload,
    InvigilatorAssignmentPayload,
    RoomAllocation,
    StudentRegistrationPayload,
)
from elms.services.repository import DateRange

logger = logging.getLogger(__name__)


def to_session_payload(session: ExamSession) -> ExamSessionPayload:
    return ExamSessionPayload(
        id=session.id,
        timetable_id=session.timetable_id,
        course_id=session.course_id,
        course_code=session.course.code if session.course else None,
        venue_id=session.venue_id,
        venue_name=session.venue.name if session.venue else None,
        exam_date=session.exam_date,
        start_time=session.start_time,
        end_time=session.end_time,
        duration_minutes=session.duration_minutes,
        rooms=[
            RoomAllocation(
                room_id=item.room_id,
                room_name=item.room.name if item.room else None,
                allocated_capacity=item.allocated_capacity,
                room_capacity=item.room.capacity if item.room else None,
            )
            for item in session.rooms
        ],
        status=session.status,
        session_status=session.session_status,
        expected_attendance=session.expected_attendance,
        capacity_exceeded=session.capacity_exceeded,
    )


def _session_query():
    return select(ExamSession).options(
        joinedload(ExamSession.course),
        joinedload(ExamSession.venue),
        selectinload(ExamSession.rooms).joinedload(SessionRoom.room),
    )


class SqlSessionRepository:
    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def _guard(self, action: str, **details: str) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as exc:
            logger.exception("Database error while %s", action)
            raise RepositoryError(f"Database error while {action}", details=details) from exc
        except ValidationError as exc:
            logger.exception("Stored data is inconsistent while %s", action)
            raise RepositoryError(f"Stored data is inconsistent while {action}", details=details) from exc

    def list_sessions_in_timetable(self, timetable_id: str) -> list[ExamSessionPayload]:
        with self._guard("loading timetable sessions", timetableId=timetable_id):
            stmt = _session_query().where(ExamSession.timetable_id == timetable_id).order_by(
                ExamSession.exam_date, ExamSession.start_time
            )
            return [to_session_payload(item) for item in self.db.execute(stmt).unique().scalars()]

    def list_assignments_for_invigilator(
        self, invigilator_id: str, date_range: DateRange | None = None
    ) -> list[InvigilatorAssignmentPayload]:
        with self._guard("loading invigilator assignments", invigilatorId=invigilator_id):
            stmt = (
                select(InvigilatorAssignment)
                .join(InvigilatorAssignment.session)
                .where(InvigilatorAssignment.invigilator_id == invigilator_id)
                .options(
                    joinedload(InvigilatorAssignment.session).joinedload(ExamSession.course),
                    joinedload(InvigilatorAssignment.session).joinedload(ExamSession.venue),
                    joinedload(InvigilatorAssignment.session)
                    .selectinload(ExamSession.rooms)
                    .joinedload(SessionRoom.room),
                )
            )
            if date_range is not None:
                stmt = stmt.where(ExamSession.exam_date.between(date_range[0], date_range[1]))
            return [
                InvigilatorAssignmentPayload(
                    invigilator_id=item.invigilator_id,
                    exam_session_id=item.exam_session_id,
                    assigned_at=item.assigned_at,
                    session=to_session_payload(item.session),
                )
                for item in self.db.execute(stmt).unique().scalars()
            ]

    def get_session(self, session_id: str) -> ExamSessionPayload | None:
        with self._guard("loading exam session", sessionId=session_id):
            session = self.db.execute(_session_query().where(ExamSession.id == session_id)).unique().scalar_one_or_none()
            return to_session_payload(session) if session else None

    def get_registration(self, student_id: str, session_id: str) -> StudentRegistrationPayload | None:
        with self._guard("loading student registration", studentId=student_id, sessionId=session_id):
            registration = self.db.execute(
                select(StudentRegistration).where(
                    StudentRegistration.student_id == student_id,
                    StudentRegistration.exam_session_id == session_id,
                )
            ).scalar_one_or_none()
            if registration is None:
                return None
            return StudentRegistrationPayload(
                student_id=registration.student_id,
                exam_session_id=registration.exam_session_id,
                is_present=registration.is_present,
                script_submitted=registration.script_submitted,
                seat_number=registration.seat_number,
                check_in_time=registration.check_in_time,
            )
