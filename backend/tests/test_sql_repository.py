from datetime import date

import pytest
from sqlalchemy.exc import OperationalError

from elms.core.exceptions import RepositoryError
from elms.models.exam_session import SessionStatus
from elms.services.conflict_service import ConflictService
from elms.services.sql_repository import SqlSessionRepository
from factories import make_session


def test_lists_sessions_with_rooms_and_labels(seeded_db):
    sessions = SqlSessionRepository(seeded_db).list_sessions_in_timetable("tt-1")
    assert len(sessions) == 1
    session = sessions[0]
    assert session.course_code == "CSC101"
    assert session.venue_name == "Main Hall"
    assert session.duration_minutes == 180
    assert session.session_status == SessionStatus.NOT_STARTED
    assert [(room.room_id, room.room_capacity) for room in session.rooms] == [("r-1", 50)]


def test_unknown_timetable_is_empty(seeded_db):
    assert SqlSessionRepository(seeded_db).list_sessions_in_timetable("tt-404") == []


def test_assignments_embed_their_session(seeded_db):
    repository = SqlSessionRepository(seeded_db)
    assignments = repository.list_assignments_for_invigilator("inv-1", (date(2025, 12, 1), date(2025, 12, 1)))
    assert len(assignments) == 1
    assert assignments[0].session is not None
    assert assignments[0].session.course_code == "CSC101"
    assert repository.list_assignments_for_invigilator("inv-1", (date(2025, 12, 2), date(2025, 12, 3))) == []


def test_registration_lookup(seeded_db):
    repository = SqlSessionRepository(seeded_db)
    registration = repository.get_registration("stu-2", "s-x")
    assert registration.script_submitted is True
    assert repository.get_registration("stu-404", "s-x") is None


def test_conflict_service_over_sql(seeded_db):
    service = ConflictService(SqlSessionRepository(seeded_db))
    candidate = make_session(
        id="s-new",
        courseId="c-y",
        courseCode="MTH201",
        startTime="10:00",
        endTime="13:00",
        rooms=[{"roomId": "r-2", "roomName": "Hall B", "roomCapacity": 70}],
    )
    result = service.validate_session(candidate, invigilator_ids=["inv-1"])
    assert result.is_valid is False
    assert result.errors == ["Invigilator inv-1 already assigned to CSC101 at Main Hall on 2025-12-01 from 09:00 to 12:00"]


def test_database_errors_become_repository_errors(seeded_db, monkeypatch):
    def broken_execute(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("database is locked"))

    monkeypatch.setattr(seeded_db, "execute", broken_execute)
    with pytest.raises(RepositoryError) as exc_info:
        SqlSessionRepository(seeded_db).get_session("s-x")
    assert exc_info.value.details == {"sessionId": "s-x"}
