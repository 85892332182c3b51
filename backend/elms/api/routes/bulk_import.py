import logging

from fastapi import APIRouter, Depends

from elms.api.deps import get_repository
from elms.core.config import Settings, get_settings
from elms.core.exceptions import AppError
from elms.schemas.bulk_import import BulkImportRequest, BulkImportResponse
from elms.schemas.exam_session import InvigilatorAssignmentPayload
from elms.services.bulk_import import BulkImportValidator, can_submit, summarize
from elms.services.sql_repository import SqlSessionRepository

router = APIRouter()

logger = logging.getLogger(__name__)


@router.post("/validate", response_model=BulkImportResponse)
def validate_bulk_import(
    payload: BulkImportRequest,
    repository: SqlSessionRepository = Depends(get_repository),
    settings: Settings = Depends(get_settings),
) -> BulkImportResponse:
    if len(payload.rows) > settings.max_bulk_import_rows:
        raise AppError(
            f"Too many rows ({len(payload.rows)}). Maximum allowed is {settings.max_bulk_import_rows}.",
            status_code=413,
        )

    existing_sessions = repository.list_sessions_in_timetable(payload.timetable_id) if payload.timetable_id else []
    date_range = (payload.start_date, payload.end_date) if payload.start_date and payload.end_date else None

    assignments: list[InvigilatorAssignmentPayload] = []
    invigilator_ids = dict.fromkeys(item for row in payload.rows for item in row.invigilator_ids)
    for invigilator_id in invigilator_ids:
        assignments.extend(repository.list_assignments_for_invigilator(invigilator_id, date_range))

    validator = BulkImportValidator(date_range=date_range, settings=settings)
    rows = list(validator.validate_batch(payload.rows, existing_sessions, assignments))
    summary = summarize(rows)
    if summary.invalid_rows:
        logger.info("Bulk import blocked: %d of %d row(s) invalid", summary.invalid_rows, summary.total_rows)
    return BulkImportResponse(rows=rows, summary=summary, can_submit=can_submit(rows))
