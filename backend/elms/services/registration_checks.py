from __future__ import annotations

from datetime import datetime

from elms.schemas.exam_session import ExamSessionPayload, StudentRegistrationPayload
from elms.schemas.validation import ValidationResult
from elms.services.session_state import session_bounds

NOT_REGISTERED_MESSAGE = "Student is not registered for this exam"


def validate_student_check_in(
    registration: StudentRegistrationPayload | None,
    session: ExamSessionPayload | None,
    now: datetime,
) -> ValidationResult:
    result = ValidationResult()
    if registration is None:
        result.add_error(NOT_REGISTERED_MESSAGE)
        return result
    if registration.is_present:
        result.add_error("Student has already been checked in")
        return result

    if session is not None:
        start, end = session_bounds(session, tzinfo=now.tzinfo)
        if now > end:
            result.add_warning("Checking in after exam end time")
        elif now > start:
            result.add_warning("Late arrival - student arriving after exam start time")
    return result


def validate_script_submission(registration: StudentRegistrationPayload | None) -> ValidationResult:
    result = ValidationResult()
    if registration is None:
        result.add_error(NOT_REGISTERED_MESSAGE)
        return result
    if registration.script_submitted:
        result.add_error("Script already submitted for this student")
        return result
    if not registration.is_present:
        result.add_warning("Student not marked as present - will be auto-marked on submission")
    return result
