from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import elms.models  # noqa: F401
from elms.api.deps import get_db
from elms.db.base import Base
from elms.main import app
from elms.models import Course, ExamSession, InvigilatorAssignment, Room, SessionRoom, StudentRegistration, Venue


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def db(engine):
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def seeded_db(db):
    """Timetable tt-1 with one session (CSC101, 09:00-12:00) staffed by invigilator inv-1."""
    venue = Venue(id="v-1", name="Main Hall", location="North Campus", capacity=120)
    venue.rooms = [Room(id="r-1", name="Hall A", capacity=50), Room(id="r-2", name="Hall B", capacity=70)]
    course = Course(id="c-x", code="CSC101", name="Intro to Computing", level=100)
    other_course = Course(id="c-y", code="MTH201", name="Linear Algebra", level=200)
    session = ExamSession(
        id="s-x",
        timetable_id="tt-1",
        course_id="c-x",
        venue_id="v-1",
        exam_date=date(2025, 12, 1),
        start_time="09:00",
        end_time="12:00",
        duration_minutes=180,
        expected_attendance=40,
    )
    session.rooms = [SessionRoom(room_id="r-1")]
    session.assignments = [InvigilatorAssignment(invigilator_id="inv-1")]
    db.add_all([venue, course, other_course, session])
    db.add(StudentRegistration(student_id="stu-1", exam_session_id="s-x"))
    db.add(StudentRegistration(student_id="stu-2", exam_session_id="s-x", is_present=True, script_submitted=True))
    db.commit()
    return db


@pytest.fixture()
def client(engine, seeded_db):
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
