from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from elms.api.deps import get_conflict_service
from elms.core.config import Settings, get_settings
from elms.schemas.exam_session import (
    CapacityResponse,
    CheckInRequest,
    ExamSessionPayload,
    OperationRequest,
    ScriptSubmissionRequest,
    SessionValidationRequest,
)
from elms.schemas.validation import ValidationResult
from elms.services.capacity import aggregate_capacity, evaluate_capacity
from elms.services.conflict_service import ConflictService

router = APIRouter()


@router.post("/validate", response_model=ValidationResult)
def validate_session(
    payload: SessionValidationRequest,
    service: ConflictService = Depends(get_conflict_service),
) -> ValidationResult:
    return service.validate_session(
        payload.candidate,
        invigilator_ids=payload.invigilator_ids,
        timetable_id=payload.timetable_id,
    )


@router.post("/capacity", response_model=CapacityResponse)
def check_capacity(
    payload: ExamSessionPayload,
    settings: Settings = Depends(get_settings),
) -> CapacityResponse:
    return CapacityResponse(
        capacity=aggregate_capacity(payload),
        result=evaluate_capacity(payload, settings),
    )


@router.post("/{session_id}/operations/validate", response_model=ValidationResult)
def validate_operation(
    session_id: str,
    payload: OperationRequest,
    service: ConflictService = Depends(get_conflict_service),
) -> ValidationResult:
    return service.evaluate_operation(session_id, payload.operation)


@router.post("/{session_id}/check-in/validate", response_model=ValidationResult)
def validate_check_in(
    session_id: str,
    payload: CheckInRequest,
    service: ConflictService = Depends(get_conflict_service),
) -> ValidationResult:
    # Session times are wall-clock times, so compare against naive local time.
    now = payload.at or datetime.now(timezone.utc).astimezone().replace(tzinfo=None)
    return service.validate_check_in(session_id, payload.student_id, now)


@router.post("/{session_id}/script-submission/validate", response_model=ValidationResult)
def validate_script_submission(
    session_id: str,
    payload: ScriptSubmissionRequest,
    service: ConflictService = Depends(get_conflict_service),
) -> ValidationResult:
    return service.validate_script_submission(session_id, payload.student_id)
