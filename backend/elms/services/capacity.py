from __future__ import annotations

import logging

from elms.core.config import Settings, get_settings
from elms.schemas.exam_session import CapacityReport, ExamSessionPayload
from elms.schemas.validation import ValidationResult

logger = logging.getLogger(__name__)


def aggregate_capacity(session: ExamSessionPayload) -> CapacityReport:
    total = sum(room.effective_capacity for room in session.rooms)
    missing = [room.label for room in session.rooms if room.effective_capacity <= 0]
    utilization = session.expected_attendance / total if total > 0 else 0.0
    return CapacityReport(
        total_capacity=total,
        utilization_rate=utilization,
        rooms_without_capacity=missing,
    )


def evaluate_capacity(session: ExamSessionPayload, settings: Settings | None = None) -> ValidationResult:
    """Check that the session's rooms can seat everyone expected.

    Capacity is always derived from the current room allocations. A stored
    ``capacity_exceeded`` flag that disagrees with the live figure is
    reported as a warning rather than trusted. Unsaved candidates carry no
    flag and skip that comparison.
    """
    settings = settings or get_settings()
    report = aggregate_capacity(session)
    result = ValidationResult()
    expected = session.expected_attendance
    total = report.total_capacity

    if total == 0:
        if session.rooms:
            result.add_error("No seating capacity available: none of the assigned rooms has a capacity defined")
        else:
            result.add_error("No rooms assigned to this exam session")
    elif expected > total:
        result.add_error(
            f"Room capacity exceeded: {expected} students registered, but only {total} seats available"
        )
    elif settings.capacity_warning_threshold < report.utilization_rate <= 1.0:
        result.add_warning(
            f"High capacity utilization: {round(report.utilization_rate * 100)}% ({expected}/{total})"
        )

    if report.rooms_without_capacity:
        result.add_warning(
            f"{len(report.rooms_without_capacity)} room(s) have no capacity defined "
            f"and were counted as 0 seats: {', '.join(report.rooms_without_capacity)}"
        )

    live_exceeded = expected > total
    if session.capacity_exceeded is not None and session.capacity_exceeded != live_exceeded:
        logger.info(
            "Stored capacity flag for session %s is stale (stored=%s, live=%s)",
            session.id,
            session.capacity_exceeded,
            live_exceeded,
        )
        result.add_warning(
            "Stored capacity flag is out of date with current room assignments; live capacity was used"
        )
    return result
