from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from elms.core.exceptions import InvalidIntervalError
from elms.schemas.exam_session import DATE_PATTERN, ExamSessionPayload, minutes_to_time, parse_time_to_minutes

LAST_MINUTE_OF_DAY = 23 * 60 + 59


@dataclass(frozen=True)
class Interval:
    """A time span on a single calendar date, in minutes since midnight."""

    day: date
    start: int
    end: int

    @property
    def duration_minutes(self) -> int:
        return self.end - self.start

    def overlaps(self, other: Interval) -> bool:
        return overlaps(self, other)

    def contains(self, other: Interval) -> bool:
        return self.day == other.day and self.start <= other.start and other.end <= self.end

    def describe(self) -> str:
        return f"{minutes_to_time(self.start)} to {minutes_to_time(self.end)}"


def parse_exam_date(value: date | str) -> date:
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not DATE_PATTERN.match(text):
        raise InvalidIntervalError(f"Invalid date '{value}'. Use YYYY-MM-DD", details={"examDate": value})
    try:
        return date.fromisoformat(text)
    except ValueError as exc:
        raise InvalidIntervalError(f"Invalid date '{value}'. Use YYYY-MM-DD", details={"examDate": value}) from exc


def _parse_minutes(value: str, field: str) -> int:
    try:
        return parse_time_to_minutes(str(value).strip())
    except ValueError as exc:
        raise InvalidIntervalError(f"Invalid time '{value}'. Use HH:MM", details={field: value}) from exc


def make_interval(exam_date: date | str, start_time: str, end_time: str) -> Interval:
    day = parse_exam_date(exam_date)
    start = _parse_minutes(start_time, "startTime")
    end = _parse_minutes(end_time, "endTime")
    if end <= start:
        raise InvalidIntervalError(
            "End time must be after start time",
            details={"startTime": start_time, "endTime": end_time},
        )
    return Interval(day=day, start=start, end=end)


def interval_from_duration(exam_date: date | str, start_time: str, duration_minutes: int) -> Interval:
    day = parse_exam_date(exam_date)
    start = _parse_minutes(start_time, "startTime")
    if duration_minutes <= 0:
        raise InvalidIntervalError("Duration must be positive", details={"duration": duration_minutes})
    end = start + duration_minutes
    if end > LAST_MINUTE_OF_DAY:
        raise InvalidIntervalError(
            "Exam must end on the same day it starts",
            details={"startTime": start_time, "duration": duration_minutes},
        )
    return Interval(day=day, start=start, end=end)


def session_interval(session: ExamSessionPayload) -> Interval:
    return make_interval(session.exam_date, session.start_time, session.end_time)


def overlaps(a: Interval, b: Interval) -> bool:
    # Touching spans (one ends exactly when the other starts) do not overlap.
    return a.day == b.day and not (a.end <= b.start or b.end <= a.start)
