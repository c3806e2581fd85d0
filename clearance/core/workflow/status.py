"""Student progress aggregation.

Pure functions over the office registry and a student's latest submission
per office. Gating and completion are always decided here from a fresh
read of the store, never from a cached request row.
"""

from typing import Any, Dict, List, Mapping, Optional

from clearance.core.offices import ClearanceOffice, OfficeRegistry
from clearance.db.store import RequestRecord, SubmissionRecord
from .states import BLOCKING_STATES, RequestStatus, SubmissionStatus

NOT_SUBMITTED = "not_submitted"

LatestSubmissions = Mapping[str, SubmissionRecord]


def is_approved(latest: LatestSubmissions, office: ClearanceOffice) -> bool:
    submission = latest.get(office.id)
    return submission is not None and submission.status == SubmissionStatus.APPROVED


def blocking_offices(
    registry: OfficeRegistry,
    latest: LatestSubmissions,
    step_number: int,
) -> List[ClearanceOffice]:
    """Earlier offices that are not yet approved for this student."""
    return [o for o in registry.offices_before(step_number) if not is_approved(latest, o)]


def is_step_open(registry: OfficeRegistry, latest: LatestSubmissions, step_number: int) -> bool:
    return not blocking_offices(registry, latest, step_number)


def all_approved(registry: OfficeRegistry, latest: LatestSubmissions) -> bool:
    return all(is_approved(latest, o) for o in registry)


def approved_count(registry: OfficeRegistry, latest: LatestSubmissions) -> int:
    return sum(1 for o in registry if is_approved(latest, o))


def current_step_number(registry: OfficeRegistry, latest: LatestSubmissions) -> int:
    """Lowest step holding an unapproved office, or the last step when all are approved."""
    for office in registry:
        if not is_approved(latest, office):
            return office.step_number
    return registry.steps()[-1]


def progress_percentage(registry: OfficeRegistry, latest: LatestSubmissions) -> int:
    return round(100 * approved_count(registry, latest) / registry.total)


def can_submit(registry: OfficeRegistry, latest: LatestSubmissions, office: ClearanceOffice) -> bool:
    """Whether a new submission to ``office`` would pass gating and duplicate checks."""
    submission = latest.get(office.id)
    if submission is not None and submission.status in BLOCKING_STATES:
        return False
    return is_step_open(registry, latest, office.step_number)


def office_status(
    registry: OfficeRegistry,
    latest: LatestSubmissions,
    office: ClearanceOffice,
) -> Dict[str, Any]:
    submission = latest.get(office.id)
    entry: Dict[str, Any] = {
        **office.to_dict(),
        "status": submission.status.value if submission else NOT_SUBMITTED,
        "can_submit": can_submit(registry, latest, office),
        "submission_id": None,
        "attempt": 0,
        "comment": None,
        "submitted_at": None,
        "actioned_at": None,
    }
    if submission is not None:
        entry.update({
            "submission_id": submission.id,
            "attempt": submission.attempt,
            "comment": submission.comment,
            "submitted_at": submission.created_at.isoformat() if submission.created_at else None,
            "actioned_at": submission.actioned_at.isoformat() if submission.actioned_at else None,
        })
    return entry


def build_student_status(
    registry: OfficeRegistry,
    student_id: str,
    latest: LatestSubmissions,
    request: Optional[RequestRecord],
) -> Dict[str, Any]:
    """Assemble the per-office breakdown shown on the student dashboard."""
    completed = request is not None and request.status == RequestStatus.COMPLETED
    return {
        "student_id": student_id,
        "request": request.to_dict() if request else None,
        "offices": [office_status(registry, latest, o) for o in registry],
        "total_offices": registry.total,
        "approved_offices": approved_count(registry, latest),
        "progress_percentage": progress_percentage(registry, latest),
        "current_step_number": current_step_number(registry, latest),
        "is_completed": completed,
        "can_access_final_forms": completed,
    }
