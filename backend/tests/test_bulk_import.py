from datetime import date

import pytest

from elms.schemas.bulk_import import BulkImportRow, RowStatus
from elms.services.bulk_import import BulkImportValidator, can_submit, rows_from_records, summarize
from factories import make_assignment, make_session


def make_row(row_number=2, **overrides) -> BulkImportRow:
    data = {
        "courseCode": "CSC101",
        "courseName": "Intro to Computing",
        "examDate": "2025-12-01",
        "startTime": "09:00",
        "duration": "180",
        "venueName": "Main Hall",
        "level": "100",
    }
    data.update(overrides)
    return BulkImportRow(rowNumber=row_number, **data)


def error_fields(row: BulkImportRow) -> list[str]:
    return [issue.field for issue in row.errors]


@pytest.fixture
def validator():
    return BulkImportValidator()


def test_rows_start_unvalidated():
    row = make_row()
    assert row.status == RowStatus.UNVALIDATED
    assert row.is_valid is False


def test_valid_row(validator):
    row = validator.validate_row(make_row())
    assert row.status == RowStatus.VALID
    assert row.errors == []


def test_invalid_month_blocks_submission(validator):
    rows = [make_row(2), make_row(3, courseCode="MTH201", examDate="2025-13-01")]
    validator.validate_batch(rows)
    assert rows[1].status == RowStatus.INVALID
    assert error_fields(rows[1]) == ["examDate"]
    assert rows[1].errors[0].message == "Invalid date format. Use YYYY-MM-DD"
    assert summarize(rows).invalid_rows >= 1
    assert can_submit(rows) is False


def test_every_field_error_is_collected(validator):
    row = make_row(
        courseCode="  ",
        examDate="01-12-2025",
        startTime="9am",
        duration="600",
        venueName="",
        level="1000",
    )
    validator.validate_row(row)
    assert error_fields(row) == ["courseCode", "examDate", "startTime", "duration", "venueName", "level"]
    messages = {issue.field: issue.message for issue in row.errors}
    assert messages["courseCode"] == "Course code is required"
    assert messages["startTime"] == "Invalid time format. Use HH:MM"
    assert messages["duration"] == "Duration must be between 30 and 480 minutes"
    assert messages["venueName"] == "Venue name is required"
    assert messages["level"] == "Level must be between 100 and 900"
    assert all(issue.severity == "error" for issue in row.errors)


@pytest.mark.parametrize("duration,valid", [("29", False), ("30", True), ("480", True), ("481", False), ("abc", False), ("", False), (120, True)])
def test_duration_bounds(validator, duration, valid):
    row = validator.validate_row(make_row(duration=duration, startTime="08:00"))
    assert row.is_valid is valid


@pytest.mark.parametrize("level,valid", [(None, True), ("", True), ("100", True), ("900", True), ("99", False), ("level 2", False)])
def test_level_is_optional_but_bounded(validator, level, valid):
    assert validator.validate_row(make_row(level=level)).is_valid is valid


def test_exam_running_past_midnight_is_rejected(validator):
    row = validator.validate_row(make_row(startTime="22:00", duration="180"))
    assert error_fields(row) == ["duration"]


def test_date_outside_timetable_range(validator):
    bounded = BulkImportValidator(date_range=(date(2025, 12, 1), date(2025, 12, 14)))
    row = bounded.validate_row(make_row(examDate="2025-12-20"))
    assert row.errors[0].message == "Date must be within timetable range (2025-12-01 to 2025-12-14)"


def test_editing_a_field_flips_row_status(validator):
    rows = validator.validate_batch([make_row(2), make_row(3, courseCode="MTH201", duration="10")])
    assert summarize(rows).invalid_rows == 1
    assert can_submit(rows) is False

    validator.update_field(rows[1], "duration", "90")
    assert rows[1].status == RowStatus.VALID
    assert summarize(rows).invalid_rows == 0
    assert can_submit(rows) is True

    validator.update_field(rows[0], "examDate", "2025-02-30")
    assert rows[0].status == RowStatus.INVALID
    assert summarize(rows).valid_rows == 1


def test_update_field_accepts_python_names(validator):
    row = validator.validate_row(make_row(venueName=""))
    validator.update_field(row, "venue_name", "Annex")
    assert row.venue_name == "Annex"
    assert row.is_valid


def test_update_field_rejects_unknown_fields(validator):
    with pytest.raises(ValueError):
        validator.update_field(make_row(), "status", "VALID")


def test_summary_matches_row_validity(validator):
    rows = validator.validate_batch(
        [make_row(2), make_row(3, courseCode="", examDate="2025-12-02"), make_row(4, courseCode="PHY110", examDate="2025-12-03")]
    )
    summary = summarize(rows)
    assert summary.total_rows == 3
    assert summary.valid_rows == 2
    assert summary.invalid_rows == 1
    assert (summary.invalid_rows == 0) == all(row.is_valid for row in rows)


def test_empty_batch_cannot_be_submitted():
    assert can_submit([]) is False


def test_rows_sharing_an_invigilator_conflict_with_each_other(validator):
    rows = validator.validate_batch(
        [
            make_row(2, invigilatorIds=["inv-1"]),
            make_row(3, courseCode="MTH201", startTime="10:00", venueName="Science Block", invigilatorIds=["inv-1"]),
            make_row(4, courseCode="PHY110", startTime="13:00", venueName="Annex", invigilatorIds=["inv-1"]),
        ]
    )
    assert rows[0].status == RowStatus.INVALID
    assert rows[1].status == RowStatus.INVALID
    assert rows[2].status == RowStatus.VALID
    assert "row 3" in rows[0].errors[0].message
    assert "row 2" in rows[1].errors[0].message


def test_same_venue_and_duplicate_course_are_warnings(validator):
    rows = validator.validate_batch(
        [
            make_row(2),
            make_row(3, startTime="10:00"),
        ]
    )
    assert all(row.is_valid for row in rows)
    assert [issue.field for issue in rows[0].warnings] == ["venueName"]
    assert [issue.field for issue in rows[1].warnings] == ["venueName", "courseCode"]
    assert summarize(rows).rows_with_warnings == 2


def test_rows_are_checked_against_existing_timetable(validator):
    existing = make_session(id="s-x", courseCode="BIO101")
    rows = validator.validate_batch(
        [make_row(2, courseCode="MTH201", startTime="11:00", duration="60", invigilatorIds=["inv-1"])],
        existing_sessions=[existing],
        existing_assignments=[make_assignment("inv-1", existing, embed=False)],
    )
    row = rows[0]
    assert row.status == RowStatus.INVALID
    assert "BIO101" in row.errors[0].message
    assert row.warnings[0].message == "Venue Main Hall is already booked for BIO101 from 09:00 to 12:00"


def test_revalidation_clears_stale_conflicts(validator):
    rows = [make_row(2, invigilatorIds=["inv-1"]), make_row(3, courseCode="MTH201", invigilatorIds=["inv-1"])]
    validator.validate_batch(rows)
    assert not can_submit(rows)
    validator.update_field(rows[1], "startTime", "14:00")
    assert can_submit(rows)
    assert [row.status for row in rows] == [RowStatus.VALID, RowStatus.VALID]


def test_unrelated_edits_keep_cross_row_conflicts(validator):
    rows = [make_row(2, invigilatorIds=["inv-1"]), make_row(3, courseCode="MTH201", invigilatorIds=["inv-1"])]
    validator.validate_batch(rows)
    validator.update_field(rows[0], "notes", "bring calculators")
    validator.update_field(rows[1], "notes", "open book")
    assert [row.status for row in rows] == [RowStatus.INVALID, RowStatus.INVALID]
    assert error_fields(rows[0]) == ["invigilatorIds"]
    assert not can_submit(rows)


def test_edits_keep_existing_timetable_conflicts(validator):
    existing = make_session(id="s-old", courseCode="PHY110", venueName="Annex")
    rows = [make_row(2, invigilatorIds=["inv-1"])]
    validator.validate_batch(rows, [existing], [make_assignment("inv-1", existing)])
    validator.update_field(rows[0], "level", "200")
    assert rows[0].status == RowStatus.INVALID
    assert "PHY110" in rows[0].errors[0].message


def test_rows_from_template_records():
    records = [
        {
            "Course Code *": "CSC101",
            "Course Name (auto)": "Intro to Computing",
            "Exam Date *": "2025-12-01",
            "Start Time *": "09:00",
            "Duration (mins) *": 180,
            "Venue Name *": "Main Hall",
            "Level": 100,
            "Notes": "",
        },
        {"Course Code *": "", "Exam Date *": "", "Start Time *": "", "Venue Name *": ""},
        {"courseCode": "MTH201", "examDate": "2025-12-02", "startTime": "14:00", "duration": "120", "venueName": "Annex"},
    ]
    rows = rows_from_records(records)
    assert [row.row_number for row in rows] == [2, 4]
    assert rows[0].duration == "180"
    assert rows[0].level == "100"
    assert rows[0].notes is None
    assert rows[1].course_code == "MTH201"


def test_whole_number_float_cells_are_read_as_integers(validator):
    records = [
        {
            "Course Code *": "CSC101",
            "Exam Date *": "2025-12-01",
            "Start Time *": "09:00",
            "Duration (mins) *": 90.0,
            "Venue Name *": "Main Hall",
            "Level": 200.0,
        }
    ]
    row = validator.validate_row(rows_from_records(records)[0])
    assert row.duration == "90"
    assert row.level == "200"
    assert row.is_valid


def test_fractional_duration_is_still_rejected(validator):
    row = validator.validate_row(make_row(duration=90.5))
    assert error_fields(row) == ["duration"]
