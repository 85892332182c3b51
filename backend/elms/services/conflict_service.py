from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Literal

from elms.core.config import Settings, get_settings
from elms.core.exceptions import ResourceNotFoundError
from elms.models.exam_session import ExamStatus, SessionOperation, SessionStatus
from elms.schemas.exam_session import ExamSessionPayload, InvigilatorAssignmentPayload
from elms.schemas.validation import ValidationResult
from elms.services.capacity import evaluate_capacity
from elms.services.intervals import Interval, overlaps, session_interval
from elms.services.registration_checks import validate_script_submission, validate_student_check_in
from elms.services.repository import SessionRepository
from elms.services.session_state import CANCELLED_MESSAGE, effective_status, evaluate_operation

logger = logging.getLogger(__name__)

BatchCheck = Literal["CAPACITY", "SESSION_STATE"]


def check_invigilator_conflict(
    invigilator_id: str,
    candidate_interval: Interval,
    existing_assignments: Iterable[InvigilatorAssignmentPayload],
    sessions_by_id: Mapping[str, ExamSessionPayload] | None = None,
    exclude_session_id: str | None = None,
) -> ValidationResult:
    """Report every assignment of ``invigilator_id`` that overlaps the candidate span."""
    result = ValidationResult()
    sessions_by_id = sessions_by_id or {}
    for assignment in existing_assignments:
        if assignment.invigilator_id != invigilator_id:
            continue
        if exclude_session_id is not None and assignment.exam_session_id == exclude_session_id:
            continue
        session = assignment.session or sessions_by_id.get(assignment.exam_session_id)
        if session is None:
            logger.warning(
                "Assignment of invigilator %s references unknown session %s",
                invigilator_id,
                assignment.exam_session_id,
            )
            continue
        if session.is_cancelled:
            continue
        existing = session_interval(session)
        if overlaps(candidate_interval, existing):
            result.add_error(
                f"Invigilator {invigilator_id} already assigned to {session.course_label} "
                f"at {session.venue_label} on {existing.day.isoformat()} from {existing.describe()}"
            )
    return result


def check_room_capacity(candidate: ExamSessionPayload, settings: Settings | None = None) -> ValidationResult:
    return evaluate_capacity(candidate, settings)


def check_venue_overlap(
    candidate: ExamSessionPayload,
    other_sessions: Iterable[ExamSessionPayload],
) -> ValidationResult:
    # Advisory only: several sections may legitimately share a room.
    result = ValidationResult()
    candidate_span = session_interval(candidate)
    candidate_rooms = {room.room_id: room for room in candidate.rooms}
    for other in other_sessions:
        if other.id == candidate.id or other.is_cancelled:
            continue
        other_span = session_interval(other)
        if not overlaps(candidate_span, other_span):
            continue
        for room in other.rooms:
            if room.room_id in candidate_rooms:
                result.add_warning(
                    f"Room {candidate_rooms[room.room_id].label} is also used by {other.course_label} "
                    f"from {other_span.describe()}"
                )
    return result


def validate_session(
    candidate: ExamSessionPayload,
    other_sessions: Iterable[ExamSessionPayload] = (),
    existing_assignments: Iterable[InvigilatorAssignmentPayload] = (),
    invigilator_ids: Iterable[str] = (),
    settings: Settings | None = None,
) -> ValidationResult:
    """Run every check for a new or edited session and report all problems together."""
    others = [session for session in other_sessions if session.id != candidate.id]
    sessions_by_id = {session.id: session for session in others}
    assignments = list(existing_assignments)
    invigilators = list(dict.fromkeys(invigilator_ids))
    result = ValidationResult()

    if candidate.is_cancelled:
        result.add_error(CANCELLED_MESSAGE)
    elif candidate.session_status == SessionStatus.COMPLETED:
        result.add_warning("Editing an exam session that has already completed")

    if candidate.rooms or candidate.status != ExamStatus.DRAFT:
        result.merge(check_room_capacity(candidate, settings))

    if invigilators:
        if not candidate.is_cancelled:
            result.merge(evaluate_operation(candidate, SessionOperation.ASSIGN_INVIGILATOR))
        candidate_span = session_interval(candidate)
        for invigilator_id in invigilators:
            result.merge(
                check_invigilator_conflict(
                    invigilator_id,
                    candidate_span,
                    assignments,
                    sessions_by_id,
                    exclude_session_id=candidate.id,
                )
            )

    result.merge(check_venue_overlap(candidate, others))
    return result


class ConflictService:
    def __init__(self, repository: SessionRepository, settings: Settings | None = None):
        self.repository = repository
        self.settings = settings or get_settings()

    def _require_session(self, session_id: str) -> ExamSessionPayload:
        session = self.repository.get_session(session_id)
        if session is None:
            raise ResourceNotFoundError("Exam session", session_id)
        return session

    def validate_session(
        self,
        candidate: ExamSessionPayload,
        invigilator_ids: Iterable[str] = (),
        timetable_id: str | None = None,
    ) -> ValidationResult:
        timetable_id = timetable_id or candidate.timetable_id
        others = self.repository.list_sessions_in_timetable(timetable_id) if timetable_id else []
        invigilators = list(dict.fromkeys(invigilator_ids))
        day_range = (candidate.exam_date, candidate.exam_date)
        assignments: list[InvigilatorAssignmentPayload] = []
        for invigilator_id in invigilators:
            assignments.extend(self.repository.list_assignments_for_invigilator(invigilator_id, day_range))

        result = validate_session(candidate, others, assignments, invigilators, self.settings)
        if not result.is_valid:
            logger.info(
                "Exam session %s rejected with %d error(s) and %d warning(s)",
                candidate.id,
                len(result.errors),
                len(result.warnings),
            )
        return result

    def evaluate_operation(self, session_id: str, operation: SessionOperation | str) -> ValidationResult:
        return evaluate_operation(self._require_session(session_id), operation)

    def evaluate_capacity(self, session_id: str) -> ValidationResult:
        return evaluate_capacity(self._require_session(session_id), self.settings)

    def validate_check_in(self, session_id: str, student_id: str, now: datetime) -> ValidationResult:
        session = self._require_session(session_id)
        registration = self.repository.get_registration(student_id, session_id)
        return ValidationResult.combine(
            evaluate_operation(effective_status(session, now), SessionOperation.CHECK_IN),
            validate_student_check_in(registration, session, now),
        )

    def validate_script_submission(self, session_id: str, student_id: str) -> ValidationResult:
        session = self._require_session(session_id)
        registration = self.repository.get_registration(student_id, session_id)
        return ValidationResult.combine(
            evaluate_operation(session, SessionOperation.SUBMIT_SCRIPT),
            validate_script_submission(registration),
        )

    def batch_validate(self, session_id: str, checks: Iterable[BatchCheck]) -> dict[str, ValidationResult]:
        session = self._require_session(session_id)
        results: dict[str, ValidationResult] = {}
        for check in checks:
            if check == "CAPACITY":
                results[check] = evaluate_capacity(session, self.settings)
            elif check == "SESSION_STATE":
                results[check] = evaluate_operation(session, SessionOperation.CHECK_IN)
        return results
