from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from datetime import date

from elms.core.config import Settings, get_settings
from elms.core.exceptions import InvalidIntervalError
from elms.schemas.bulk_import import BulkImportRow, ImportSummary, RowIssue, RowStatus
from elms.schemas.exam_session import (
    DATE_PATTERN,
    TIME_PATTERN,
    ExamSessionPayload,
    InvigilatorAssignmentPayload,
)
from elms.services.conflict_service import check_invigilator_conflict
from elms.services.intervals import Interval, interval_from_duration, overlaps, session_interval

logger = logging.getLogger(__name__)

BatchContext = tuple[Sequence[BulkImportRow], list[ExamSessionPayload], list[InvigilatorAssignmentPayload]]

# Sheet headers used by the upload template, mapped to row fields.
HEADER_ALIASES: dict[str, str] = {
    "course code *": "courseCode",
    "course code": "courseCode",
    "course name (auto)": "courseName",
    "course name": "courseName",
    "exam date *": "examDate",
    "exam date": "examDate",
    "start time *": "startTime",
    "start time": "startTime",
    "duration (mins) *": "duration",
    "duration (mins)": "duration",
    "duration": "duration",
    "venue name *": "venueName",
    "venue name (auto)": "venueName",
    "venue name": "venueName",
    "venue location": "venueLocation",
    "level": "level",
    "notes": "notes",
    "special requirements": "specialRequirements",
}

EDITABLE_FIELDS: dict[str, str] = {
    "courseCode": "course_code",
    "courseName": "course_name",
    "examDate": "exam_date",
    "startTime": "start_time",
    "duration": "duration",
    "venueName": "venue_name",
    "venueLocation": "venue_location",
    "level": "level",
    "notes": "notes",
    "specialRequirements": "special_requirements",
    "invigilatorIds": "invigilator_ids",
}


def _parse_int(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None


def _parse_date(value: str) -> date | None:
    if not DATE_PATTERN.match(value):
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


def rows_from_records(records: Iterable[Mapping[str, object]], first_row_number: int = 2) -> list[BulkImportRow]:
    """Build rows from sheet records keyed by header text or column name.

    Row numbers follow the sheet (header on row 1), so blank records are
    skipped without renumbering the rest.
    """
    rows: list[BulkImportRow] = []
    for index, record in enumerate(records):
        data: dict[str, object] = {}
        for key, value in record.items():
            name = HEADER_ALIASES.get(str(key).strip().lower(), str(key).strip())
            if name in EDITABLE_FIELDS:
                data[name] = value
        row = BulkImportRow(row_number=first_row_number + index, **data)
        if not (row.course_code or row.exam_date or row.start_time or row.venue_name):
            continue
        rows.append(row)
    return rows


def summarize(rows: Sequence[BulkImportRow]) -> ImportSummary:
    # Always recomputed: rows are edited in place between calls.
    total = len(rows)
    valid = sum(1 for row in rows if row.is_valid)
    return ImportSummary(
        total_rows=total,
        valid_rows=valid,
        invalid_rows=total - valid,
        rows_with_warnings=sum(1 for row in rows if row.warnings),
    )


def can_submit(rows: Sequence[BulkImportRow]) -> bool:
    return bool(rows) and summarize(rows).invalid_rows == 0


class BulkImportValidator:
    def __init__(self, date_range: tuple[date, date] | None = None, settings: Settings | None = None):
        self.date_range = date_range
        self.settings = settings or get_settings()
        # Context of the last validate_batch call, replayed when one of its rows is edited.
        self._batch: BatchContext | None = None

    def validate_row(self, row: BulkImportRow) -> BulkImportRow:
        """Re-run every field check on ``row``, replacing any earlier findings."""
        settings = self.settings
        errors: list[RowIssue] = []

        if not row.course_code:
            errors.append(RowIssue(field="courseCode", message="Course code is required"))

        exam_date = _parse_date(row.exam_date)
        if exam_date is None:
            errors.append(RowIssue(field="examDate", message="Invalid date format. Use YYYY-MM-DD"))
        elif self.date_range and not self.date_range[0] <= exam_date <= self.date_range[1]:
            start, end = self.date_range
            errors.append(
                RowIssue(
                    field="examDate",
                    message=f"Date must be within timetable range ({start.isoformat()} to {end.isoformat()})",
                )
            )

        time_ok = bool(TIME_PATTERN.match(row.start_time))
        if not time_ok:
            errors.append(RowIssue(field="startTime", message="Invalid time format. Use HH:MM"))

        duration = _parse_int(row.duration)
        duration_ok = (
            duration is not None
            and settings.min_exam_duration_minutes <= duration <= settings.max_exam_duration_minutes
        )
        if not duration_ok:
            errors.append(
                RowIssue(
                    field="duration",
                    message=(
                        f"Duration must be between {settings.min_exam_duration_minutes} "
                        f"and {settings.max_exam_duration_minutes} minutes"
                    ),
                )
            )

        if not row.venue_name:
            errors.append(RowIssue(field="venueName", message="Venue name is required"))

        if row.level is not None:
            level = _parse_int(row.level)
            if level is None or not settings.min_course_level <= level <= settings.max_course_level:
                errors.append(
                    RowIssue(
                        field="level",
                        message=(
                            f"Level must be between {settings.min_course_level} "
                            f"and {settings.max_course_level}"
                        ),
                    )
                )

        if exam_date is not None and time_ok and duration_ok:
            try:
                interval_from_duration(exam_date, row.start_time, duration)
            except InvalidIntervalError as exc:
                errors.append(RowIssue(field="duration", message=exc.message))

        row.errors = errors
        row.warnings = []
        self._refresh_status(row)
        return row

    def update_field(self, row: BulkImportRow, field: str, value: object) -> BulkImportRow:
        """Apply an edit and re-validate.

        Rows from the last validated batch are re-checked together with the
        rest of that batch, so cross-row conflicts survive edits elsewhere.
        """
        attribute = EDITABLE_FIELDS.get(field)
        if attribute is None and field in EDITABLE_FIELDS.values():
            attribute = field
        if attribute is None:
            raise ValueError(f"Unknown bulk import field: {field}")
        setattr(row, attribute, value)
        if self._batch is not None and any(row is member for member in self._batch[0]):
            rows, sessions, assignments = self._batch
            self.validate_batch(rows, sessions, assignments)
            return row
        return self.validate_row(row)

    def row_interval(self, row: BulkImportRow) -> Interval | None:
        if row.errors:
            return None
        duration = _parse_int(row.duration)
        try:
            return interval_from_duration(row.exam_date, row.start_time, duration or 0)
        except InvalidIntervalError:
            return None

    def validate_batch(
        self,
        rows: Sequence[BulkImportRow],
        existing_sessions: Iterable[ExamSessionPayload] = (),
        existing_assignments: Iterable[InvigilatorAssignmentPayload] = (),
    ) -> Sequence[BulkImportRow]:
        """Validate every row, then check rows against each other and the existing timetable."""
        existing_sessions = list(existing_sessions)
        existing_assignments = list(existing_assignments)
        self._batch = (rows, existing_sessions, existing_assignments)
        for row in rows:
            self.validate_row(row)

        spans = [(row, span) for row in rows if (span := self.row_interval(row)) is not None]
        self._check_within_batch(rows, spans)
        self._check_against_timetable(spans, existing_sessions, existing_assignments)

        for row in rows:
            self._refresh_status(row)
        summary = summarize(rows)
        logger.info(
            "Bulk import validated: %d row(s), %d valid, %d invalid",
            summary.total_rows,
            summary.valid_rows,
            summary.invalid_rows,
        )
        return rows

    def _check_within_batch(
        self,
        rows: Sequence[BulkImportRow],
        spans: list[tuple[BulkImportRow, Interval]],
    ) -> None:
        for index, (row, span) in enumerate(spans):
            for other, other_span in spans[index + 1:]:
                if not overlaps(span, other_span):
                    continue
                for invigilator_id in sorted(set(row.invigilator_ids) & set(other.invigilator_ids)):
                    row.errors.append(RowIssue(
                        field="invigilatorIds",
                        message=f"Invigilator {invigilator_id} is also assigned to row {other.row_number} "
                        f"({other.course_code}) from {other_span.describe()}",
                    ))
                    other.errors.append(RowIssue(
                        field="invigilatorIds",
                        message=f"Invigilator {invigilator_id} is also assigned to row {row.row_number} "
                        f"({row.course_code}) from {span.describe()}",
                    ))
                if row.venue_name.casefold() == other.venue_name.casefold():
                    for first, second, second_span in ((row, other, other_span), (other, row, span)):
                        first.warnings.append(RowIssue(
                            field="venueName",
                            message=f"Venue {first.venue_name} is also booked by row {second.row_number} "
                            f"({second.course_code}) from {second_span.describe()}",
                            severity="warning",
                        ))

        seen: dict[str, BulkImportRow] = {}
        for row in rows:
            if not row.course_code:
                continue
            key = row.course_code.casefold()
            if key in seen:
                row.warnings.append(RowIssue(
                    field="courseCode",
                    message=f"Course {row.course_code} is also scheduled in row {seen[key].row_number}",
                    severity="warning",
                ))
            else:
                seen[key] = row

    def _check_against_timetable(
        self,
        spans: list[tuple[BulkImportRow, Interval]],
        sessions: list[ExamSessionPayload],
        assignments: list[InvigilatorAssignmentPayload],
    ) -> None:
        sessions_by_id = {session.id: session for session in sessions}
        for row, span in spans:
            for invigilator_id in dict.fromkeys(row.invigilator_ids):
                conflict = check_invigilator_conflict(invigilator_id, span, assignments, sessions_by_id)
                row.errors.extend(RowIssue(field="invigilatorIds", message=message) for message in conflict.errors)
            for session in sessions:
                if session.is_cancelled or not session.venue_name:
                    continue
                if session.venue_name.casefold() != row.venue_name.casefold():
                    continue
                existing = session_interval(session)
                if overlaps(span, existing):
                    row.warnings.append(RowIssue(
                        field="venueName",
                        message=f"Venue {row.venue_name} is already booked for {session.course_label} "
                        f"from {existing.describe()}",
                        severity="warning",
                    ))

    @staticmethod
    def _refresh_status(row: BulkImportRow) -> None:
        row.status = RowStatus.INVALID if row.errors else RowStatus.VALID
