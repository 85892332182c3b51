from elms.models.course import Course  # noqa: F401
from elms.models.exam_session import (  # noqa: F401
    ExamSession,
    ExamStatus,
    InvigilatorAssignment,
    SessionOperation,
    SessionRoom,
    SessionStatus,
    StudentRegistration,
)
from elms.models.venue import Room, Venue  # noqa: F401
