from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator, model_validator


def _cell_text(value: object) -> str:
    # Spreadsheet readers hand back whole numbers as floats (90.0).
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


class RowStatus(str, Enum):
    UNVALIDATED = "UNVALIDATED"
    VALID = "VALID"
    INVALID = "INVALID"


class RowIssue(BaseModel):
    field: str
    message: str
    severity: Literal["error", "warning"] = "error"


class BulkImportRow(BaseModel):
    """One candidate exam session as read from an uploaded sheet.

    Field values stay raw strings so a malformed cell can be reported and
    edited instead of failing the whole request.
    """

    model_config = ConfigDict(populate_by_name=True, validate_assignment=True)

    row_number: int = Field(alias="rowNumber", ge=1)
    course_code: str = Field(default="", alias="courseCode")
    course_name: str | None = Field(default=None, alias="courseName")
    exam_date: str = Field(default="", alias="examDate")
    start_time: str = Field(default="", alias="startTime")
    duration: str = ""
    venue_name: str = Field(default="", alias="venueName")
    venue_location: str | None = Field(default=None, alias="venueLocation")
    level: str | None = None
    notes: str | None = None
    special_requirements: str | None = Field(default=None, alias="specialRequirements")
    # Assigned during review, not read from the sheet.
    invigilator_ids: list[str] = Field(default_factory=list, alias="invigilatorIds")

    errors: list[RowIssue] = Field(default_factory=list)
    warnings: list[RowIssue] = Field(default_factory=list)
    status: RowStatus = RowStatus.UNVALIDATED

    @field_validator(
        "course_code",
        "exam_date",
        "start_time",
        "duration",
        "venue_name",
        mode="before",
    )
    @classmethod
    def coerce_cell(cls, value: object) -> str:
        if value is None:
            return ""
        return _cell_text(value)

    @field_validator(
        "course_name",
        "venue_location",
        "level",
        "notes",
        "special_requirements",
        mode="before",
    )
    @classmethod
    def coerce_optional_cell(cls, value: object) -> str | None:
        if value is None:
            return None
        return _cell_text(value) or None

    @computed_field(alias="isValid")
    @property
    def is_valid(self) -> bool:
        return self.status == RowStatus.VALID


class ImportSummary(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total_rows: int = Field(alias="totalRows")
    valid_rows: int = Field(alias="validRows")
    invalid_rows: int = Field(alias="invalidRows")
    rows_with_warnings: int = Field(alias="rowsWithWarnings")


class BulkImportRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    timetable_id: str | None = Field(default=None, alias="timetableId", max_length=36)
    start_date: date | None = Field(default=None, alias="startDate")
    end_date: date | None = Field(default=None, alias="endDate")
    rows: list[BulkImportRow] = Field(min_length=1)

    @model_validator(mode="after")
    def validate_range(self) -> "BulkImportRequest":
        if (self.start_date is None) != (self.end_date is None):
            raise ValueError("startDate and endDate must be provided together")
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("endDate must not be before startDate")
        return self


class BulkImportResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    rows: list[BulkImportRow]
    summary: ImportSummary
    can_submit: bool = Field(alias="canSubmit")
