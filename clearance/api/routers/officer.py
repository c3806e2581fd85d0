"""Officer clearance endpoints.

Officers work the queue of their assigned office. The office defaults to
the officer's assignment; oversight officers may pass any office.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from clearance.api.deps import get_engine, get_policy, require_officer
from clearance.api.errors import respond
from clearance.api.schemas.clearance import ApproveSubmissionRequest, RejectSubmissionRequest
from clearance.api.schemas.common import WorkflowResponse
from clearance.core.access.policy import OfficerAccessPolicy
from clearance.core.errors import Forbidden, ValidationError, WorkflowResult
from clearance.core.identity import OfficerProfile
from clearance.core.workflow.engine import ClearanceWorkflowEngine

router = APIRouter(prefix="/officer/clearance", tags=["officer-clearance"])


def _department_scope(
    officer: OfficerProfile,
    policy: OfficerAccessPolicy,
    department: Optional[str],
) -> Optional[str]:
    """Department-scoped officers only ever see their own department."""
    if officer.assigned_department_id and not policy.is_oversight(officer):
        return officer.assigned_department_id
    return department


@router.get("/pending", response_model=WorkflowResponse)
def list_pending(
    office_id: Optional[str] = None,
    department: Optional[str] = Query(None, description="Filter by student department"),
    officer: OfficerProfile = Depends(require_officer),
    policy: OfficerAccessPolicy = Depends(get_policy),
    engine: ClearanceWorkflowEngine = Depends(get_engine),
):
    """List pending submissions for the officer's office, oldest first."""
    office_id = office_id or officer.assigned_office_id
    if not office_id:
        return respond(WorkflowResult.failure(ValidationError("office_id is required")))
    result = engine.get_office_pending_submissions(
        office_id, officer, _department_scope(officer, policy, department)
    )
    return respond(result)


@router.get("/all", response_model=WorkflowResponse)
def list_history(
    office_id: Optional[str] = None,
    department: Optional[str] = Query(None, description="Filter by student department"),
    officer: OfficerProfile = Depends(require_officer),
    policy: OfficerAccessPolicy = Depends(get_policy),
    engine: ClearanceWorkflowEngine = Depends(get_engine),
):
    """List every submission of the office, newest first."""
    office_id = office_id or officer.assigned_office_id
    if not office_id:
        return respond(WorkflowResult.failure(ValidationError("office_id is required")))
    result = engine.get_office_all_submissions(
        office_id, officer, _department_scope(officer, policy, department)
    )
    return respond(result)


@router.get("/statistics", response_model=WorkflowResponse)
def office_statistics(
    office_id: Optional[str] = None,
    department: Optional[str] = None,
    officer: OfficerProfile = Depends(require_officer),
    policy: OfficerAccessPolicy = Depends(get_policy),
    engine: ClearanceWorkflowEngine = Depends(get_engine),
):
    office_id = office_id or officer.assigned_office_id
    if not office_id:
        return respond(WorkflowResult.failure(ValidationError("office_id is required")))
    if policy.resolve_office_id(office_id) and not policy.can_view_office(officer, office_id):
        return respond(WorkflowResult.failure(Forbidden("You are not assigned to this office")))
    return respond(engine.get_office_statistics(office_id, _department_scope(officer, policy, department)))


@router.get("/submissions/{submission_id}", response_model=WorkflowResponse)
def get_submission(
    submission_id: str,
    officer: OfficerProfile = Depends(require_officer),
    engine: ClearanceWorkflowEngine = Depends(get_engine),
):
    return respond(engine.get_submission(submission_id, officer))


@router.post("/submissions/{submission_id}/approve", response_model=WorkflowResponse)
def approve_submission(
    submission_id: str,
    body: Optional[ApproveSubmissionRequest] = None,
    officer: OfficerProfile = Depends(require_officer),
    engine: ClearanceWorkflowEngine = Depends(get_engine),
):
    """Approve a pending submission."""
    comment = body.comment if body else None
    return respond(engine.approve_submission(submission_id, officer, comment))


@router.post("/submissions/{submission_id}/reject", response_model=WorkflowResponse)
def reject_submission(
    submission_id: str,
    body: RejectSubmissionRequest,
    officer: OfficerProfile = Depends(require_officer),
    engine: ClearanceWorkflowEngine = Depends(get_engine),
):
    """Reject a pending submission. A reason is required."""
    return respond(engine.reject_submission(submission_id, officer, body.reason))
