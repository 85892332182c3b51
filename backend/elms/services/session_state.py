from __future__ import annotations

from datetime import datetime, time, timedelta
from enum import Enum

from elms.models.exam_session import SessionOperation, SessionStatus
from elms.schemas.exam_session import ExamSessionPayload, parse_time_to_minutes
from elms.schemas.validation import ValidationResult

CANCELLED_MESSAGE = "Cannot perform operation on a cancelled exam"


class Verdict(str, Enum):
    ALLOWED = "allowed"
    WARNING = "warning"
    REJECTED = "rejected"


# Exam-day legality of each operation. Cancellation is handled before lookup.
OPERATION_RULES: dict[tuple[SessionOperation, SessionStatus], tuple[Verdict, str | None]] = {
    (SessionOperation.CHECK_IN, SessionStatus.NOT_STARTED): (Verdict.WARNING, "Checking in before exam start time"),
    (SessionOperation.CHECK_IN, SessionStatus.IN_PROGRESS): (Verdict.ALLOWED, None),
    (SessionOperation.CHECK_IN, SessionStatus.COMPLETED): (
        Verdict.REJECTED,
        "Cannot check in students after exam completion",
    ),
    (SessionOperation.CHECK_IN, SessionStatus.CANCELLED): (Verdict.REJECTED, CANCELLED_MESSAGE),
    (SessionOperation.SUBMIT_SCRIPT, SessionStatus.NOT_STARTED): (
        Verdict.REJECTED,
        "Cannot submit scripts before exam starts",
    ),
    (SessionOperation.SUBMIT_SCRIPT, SessionStatus.IN_PROGRESS): (Verdict.ALLOWED, None),
    (SessionOperation.SUBMIT_SCRIPT, SessionStatus.COMPLETED): (
        Verdict.WARNING,
        "Submitting script after exam end time",
    ),
    (SessionOperation.SUBMIT_SCRIPT, SessionStatus.CANCELLED): (Verdict.REJECTED, CANCELLED_MESSAGE),
    (SessionOperation.ASSIGN_INVIGILATOR, SessionStatus.NOT_STARTED): (Verdict.ALLOWED, None),
    (SessionOperation.ASSIGN_INVIGILATOR, SessionStatus.IN_PROGRESS): (Verdict.ALLOWED, None),
    (SessionOperation.ASSIGN_INVIGILATOR, SessionStatus.COMPLETED): (
        Verdict.REJECTED,
        "Cannot assign invigilators after exam completion",
    ),
    (SessionOperation.ASSIGN_INVIGILATOR, SessionStatus.CANCELLED): (Verdict.REJECTED, CANCELLED_MESSAGE),
    (SessionOperation.REPORT_INCIDENT, SessionStatus.NOT_STARTED): (Verdict.ALLOWED, None),
    (SessionOperation.REPORT_INCIDENT, SessionStatus.IN_PROGRESS): (Verdict.ALLOWED, None),
    (SessionOperation.REPORT_INCIDENT, SessionStatus.COMPLETED): (
        Verdict.WARNING,
        "Reporting incident after exam completion",
    ),
    (SessionOperation.REPORT_INCIDENT, SessionStatus.CANCELLED): (Verdict.REJECTED, CANCELLED_MESSAGE),
}

TRANSITIONS: dict[SessionStatus, frozenset[SessionStatus]] = {
    SessionStatus.NOT_STARTED: frozenset({SessionStatus.IN_PROGRESS, SessionStatus.CANCELLED}),
    SessionStatus.IN_PROGRESS: frozenset({SessionStatus.COMPLETED, SessionStatus.CANCELLED}),
    SessionStatus.COMPLETED: frozenset(),
    SessionStatus.CANCELLED: frozenset(),
}


def _status_of(session: ExamSessionPayload | SessionStatus) -> SessionStatus:
    if isinstance(session, ExamSessionPayload):
        return SessionStatus.CANCELLED if session.is_cancelled else SessionStatus(session.session_status)
    return SessionStatus(session)


def evaluate_operation(
    session: ExamSessionPayload | SessionStatus,
    operation: SessionOperation | str,
) -> ValidationResult:
    result = ValidationResult()
    try:
        operation = SessionOperation(operation)
    except ValueError:
        result.add_error(f"Unsupported operation: {operation}")
        return result

    status = _status_of(session)
    if status == SessionStatus.CANCELLED:
        result.add_error(CANCELLED_MESSAGE)
        return result

    verdict, message = OPERATION_RULES[(operation, status)]
    if verdict == Verdict.REJECTED:
        result.add_error(message)
    elif verdict == Verdict.WARNING:
        result.add_warning(message)
    return result


def check_transition(current: SessionStatus, target: SessionStatus) -> ValidationResult:
    result = ValidationResult()
    current, target = SessionStatus(current), SessionStatus(target)
    if current == target:
        result.add_warning(f"Session is already {current.value}")
    elif target not in TRANSITIONS[current]:
        result.add_error(f"Cannot move exam session from {current.value} to {target.value}")
    return result


def status_after_operation(status: SessionStatus, operation: SessionOperation) -> SessionStatus:
    """Status implied by performing ``operation``: the first check-in starts the session."""
    if SessionOperation(operation) == SessionOperation.CHECK_IN and status == SessionStatus.NOT_STARTED:
        return SessionStatus.IN_PROGRESS
    return SessionStatus(status)


def session_bounds(session: ExamSessionPayload, tzinfo=None) -> tuple[datetime, datetime]:
    midnight = datetime.combine(session.exam_date, time(0, 0), tzinfo=tzinfo)
    start = midnight + timedelta(minutes=parse_time_to_minutes(session.start_time))
    end = midnight + timedelta(minutes=parse_time_to_minutes(session.end_time))
    return start, end


def derive_session_status(session: ExamSessionPayload, now: datetime) -> SessionStatus:
    if session.is_cancelled:
        return SessionStatus.CANCELLED
    start, end = session_bounds(session, tzinfo=now.tzinfo)
    if now >= end:
        return SessionStatus.COMPLETED
    if now >= start:
        return SessionStatus.IN_PROGRESS
    return SessionStatus.NOT_STARTED


def effective_status(session: ExamSessionPayload, now: datetime) -> SessionStatus:
    """Stored status, advanced to IN_PROGRESS once the start time has passed.

    A session still recorded as NOT_STARTED after its start time is treated as
    running. Completion is never inferred from the clock; it has to be recorded.
    """
    stored = _status_of(session)
    if stored == SessionStatus.NOT_STARTED and derive_session_status(session, now) != SessionStatus.NOT_STARTED:
        return SessionStatus.IN_PROGRESS
    return stored
