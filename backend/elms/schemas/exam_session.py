from __future__ import annotations

import re
from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from elms.models.exam_session import ExamStatus, SessionOperation, SessionStatus
from elms.schemas.validation import ValidationResult

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")
DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def parse_time_to_minutes(value: str) -> int:
    if not TIME_PATTERN.match(value):
        raise ValueError("Time must be in HH:MM 24-hour format")
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def minutes_to_time(value: int) -> str:
    hours = value // 60
    minutes = value % 60
    return f"{hours:02d}:{minutes:02d}"


class RoomAllocation(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    room_id: str = Field(alias="roomId", min_length=1, max_length=36)
    room_name: str | None = Field(default=None, alias="roomName", max_length=100)
    allocated_capacity: int | None = Field(default=None, alias="allocatedCapacity", ge=0, le=10000)
    room_capacity: int | None = Field(default=None, alias="roomCapacity", ge=0, le=10000)

    @property
    def effective_capacity(self) -> int:
        if self.allocated_capacity is not None:
            return self.allocated_capacity
        return self.room_capacity or 0

    @property
    def label(self) -> str:
        return self.room_name or self.room_id


class ExamSessionPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(min_length=1, max_length=36)
    timetable_id: str | None = Field(default=None, alias="timetableId", max_length=36)
    course_id: str = Field(alias="courseId", min_length=1, max_length=36)
    course_code: str | None = Field(default=None, alias="courseCode", max_length=50)
    venue_id: str = Field(alias="venueId", min_length=1, max_length=36)
    venue_name: str | None = Field(default=None, alias="venueName", max_length=200)
    exam_date: date = Field(alias="examDate")
    start_time: str = Field(alias="startTime")
    end_time: str = Field(alias="endTime")
    duration_minutes: int | None = Field(default=None, alias="durationMinutes", ge=1)
    rooms: list[RoomAllocation] = Field(default_factory=list, max_length=200)
    status: ExamStatus = ExamStatus.SCHEDULED
    session_status: SessionStatus = Field(default=SessionStatus.NOT_STARTED, alias="sessionStatus")
    expected_attendance: int = Field(default=0, alias="expectedAttendance", ge=0)
    capacity_exceeded: bool | None = Field(default=None, alias="capacityExceeded")

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time_format(cls, value: str) -> str:
        value = value.strip()
        if not TIME_PATTERN.match(value):
            raise ValueError("Time must be in HH:MM 24-hour format")
        return value

    @model_validator(mode="after")
    def validate_span(self) -> "ExamSessionPayload":
        span = parse_time_to_minutes(self.end_time) - parse_time_to_minutes(self.start_time)
        if span <= 0:
            raise ValueError("endTime must be after startTime")
        if self.duration_minutes is None:
            self.duration_minutes = span
        elif self.duration_minutes != span:
            raise ValueError("durationMinutes must equal the minutes between startTime and endTime")
        return self

    @property
    def is_cancelled(self) -> bool:
        return self.status == ExamStatus.CANCELLED or self.session_status == SessionStatus.CANCELLED

    @property
    def course_label(self) -> str:
        return self.course_code or self.course_id

    @property
    def venue_label(self) -> str:
        return self.venue_name or self.venue_id


class InvigilatorAssignmentPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    invigilator_id: str = Field(alias="invigilatorId", min_length=1, max_length=36)
    exam_session_id: str = Field(alias="examSessionId", min_length=1, max_length=36)
    assigned_at: datetime | None = Field(default=None, alias="assignedAt")
    session: ExamSessionPayload | None = None


class StudentRegistrationPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    student_id: str = Field(alias="studentId", min_length=1, max_length=36)
    exam_session_id: str = Field(alias="examSessionId", min_length=1, max_length=36)
    is_present: bool = Field(default=False, alias="isPresent")
    script_submitted: bool = Field(default=False, alias="scriptSubmitted")
    seat_number: str | None = Field(default=None, alias="seatNumber", max_length=20)
    check_in_time: datetime | None = Field(default=None, alias="checkInTime")

    @model_validator(mode="after")
    def mark_present_on_submission(self) -> "StudentRegistrationPayload":
        if self.script_submitted:
            self.is_present = True
        return self


class CapacityReport(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total_capacity: int = Field(alias="totalCapacity")
    utilization_rate: float = Field(alias="utilizationRate")
    rooms_without_capacity: list[str] = Field(default_factory=list, alias="roomsWithoutCapacity")


class SessionValidationRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    candidate: ExamSessionPayload
    timetable_id: str | None = Field(default=None, alias="timetableId", max_length=36)
    invigilator_ids: list[str] = Field(default_factory=list, alias="invigilatorIds", max_length=50)


class OperationRequest(BaseModel):
    operation: SessionOperation


class CheckInRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    student_id: str = Field(alias="studentId", min_length=1, max_length=36)
    at: datetime | None = None


class ScriptSubmissionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    student_id: str = Field(alias="studentId", min_length=1, max_length=36)


class CapacityResponse(BaseModel):
    capacity: CapacityReport
    result: ValidationResult
