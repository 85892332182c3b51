import pytest

from elms.services.capacity import aggregate_capacity, evaluate_capacity
from factories import make_session


def test_aggregate_prefers_allocated_capacity_over_room_capacity():
    session = make_session(
        rooms=[
            {"roomId": "r-1", "roomCapacity": 50, "allocatedCapacity": 30},
            {"roomId": "r-2", "roomCapacity": 20},
        ],
        expectedAttendance=25,
    )
    report = aggregate_capacity(session)
    assert report.total_capacity == 50
    assert report.utilization_rate == pytest.approx(0.5)
    assert report.rooms_without_capacity == []


def test_capacity_exceeded_is_an_error():
    session = make_session(expectedAttendance=55, capacityExceeded=True)
    result = evaluate_capacity(session)
    assert result.is_valid is False
    assert len(result.errors) == 1
    assert "55" in result.errors[0]
    assert "50" in result.errors[0]
    assert result.warnings == []


def test_high_utilization_is_a_warning():
    session = make_session(expectedAttendance=46)
    result = evaluate_capacity(session)
    assert result.is_valid is True
    assert result.errors == []
    assert len(result.warnings) == 1
    assert "92%" in result.warnings[0]


def test_full_room_is_still_valid():
    result = evaluate_capacity(make_session(expectedAttendance=50))
    assert result.is_valid is True
    assert "100%" in result.warnings[0]


def test_capacity_is_monotonic_in_attendance():
    outcomes = [evaluate_capacity(make_session(expectedAttendance=count)).is_valid for count in range(0, 80)]
    first_invalid = outcomes.index(False)
    assert first_invalid == 51
    assert not any(outcomes[first_invalid:])


def test_room_without_capacity_counts_as_zero_and_warns():
    session = make_session(
        rooms=[
            {"roomId": "r-1", "roomName": "Hall A", "roomCapacity": 50},
            {"roomId": "r-9", "roomName": "Annex"},
        ],
        expectedAttendance=10,
    )
    result = evaluate_capacity(session)
    assert result.is_valid is True
    assert any("1 room(s) have no capacity defined" in warning for warning in result.warnings)
    assert any("Annex" in warning for warning in result.warnings)


def test_zero_total_capacity_is_an_error_not_a_division():
    session = make_session(rooms=[{"roomId": "r-9"}], expectedAttendance=0)
    report = aggregate_capacity(session)
    assert report.total_capacity == 0
    assert report.utilization_rate == 0
    result = evaluate_capacity(session)
    assert result.is_valid is False


def test_no_rooms_is_an_error():
    result = evaluate_capacity(make_session(rooms=[]))
    assert result.is_valid is False
    assert result.errors == ["No rooms assigned to this exam session"]


def test_stale_stored_flag_is_reported():
    session = make_session(expectedAttendance=10, capacityExceeded=True)
    result = evaluate_capacity(session)
    assert result.is_valid is True
    assert any("out of date" in warning for warning in result.warnings)


def test_unsaved_candidate_has_no_stored_flag_to_compare():
    session = make_session(expectedAttendance=55)
    result = evaluate_capacity(session)
    assert session.capacity_exceeded is None
    assert len(result.errors) == 1
    assert result.warnings == []
