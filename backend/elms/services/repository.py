from __future__ import annotations

from collections.abc import Iterable
from datetime import date
from typing import Protocol

from elms.schemas.exam_session import (
    ExamSessionPayload,
    InvigilatorAssignmentPayload,
    StudentRegistrationPayload,
)

DateRange = tuple[date, date]


class SessionRepository(Protocol):
    """Read access to persisted timetable data. Implementations raise ``RepositoryError`` on failure."""

    def list_sessions_in_timetable(self, timetable_id: str) -> list[ExamSessionPayload]: ...

    def list_assignments_for_invigilator(
        self, invigilator_id: str, date_range: DateRange | None = None
    ) -> list[InvigilatorAssignmentPayload]: ...

    def get_session(self, session_id: str) -> ExamSessionPayload | None: ...

    def get_registration(self, student_id: str, session_id: str) -> StudentRegistrationPayload | None: ...


class InMemorySessionRepository:
    def __init__(
        self,
        sessions: Iterable[ExamSessionPayload] = (),
        assignments: Iterable[InvigilatorAssignmentPayload] = (),
        registrations: Iterable[StudentRegistrationPayload] = (),
    ) -> None:
        self._sessions = {session.id: session for session in sessions}
        self._assignments = list(assignments)
        self._registrations = {(item.student_id, item.exam_session_id): item for item in registrations}

    def list_sessions_in_timetable(self, timetable_id: str) -> list[ExamSessionPayload]:
        return [session for session in self._sessions.values() if session.timetable_id == timetable_id]

    def list_assignments_for_invigilator(
        self, invigilator_id: str, date_range: DateRange | None = None
    ) -> list[InvigilatorAssignmentPayload]:
        matches: list[InvigilatorAssignmentPayload] = []
        for assignment in self._assignments:
            if assignment.invigilator_id != invigilator_id:
                continue
            session = assignment.session or self._sessions.get(assignment.exam_session_id)
            if session is None:
                continue
            if date_range and not date_range[0] <= session.exam_date <= date_range[1]:
                continue
            matches.append(assignment.model_copy(update={"session": session}))
        return matches

    def get_session(self, session_id: str) -> ExamSessionPayload | None:
        return self._sessions.get(session_id)

    def get_registration(self, student_id: str, session_id: str) -> StudentRegistrationPayload | None:
        return self._registrations.get((student_id, session_id))
