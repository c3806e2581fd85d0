"""Oversight endpoints: read access across every office."""

from typing import Optional

from fastapi import APIRouter, Depends

from clearance.api.deps import get_engine, require_oversight
from clearance.api.errors import respond
from clearance.api.schemas.common import WorkflowResponse
from clearance.core.identity import OfficerProfile
from clearance.core.workflow.engine import ClearanceWorkflowEngine

router = APIRouter(prefix="/oversight", tags=["oversight"])


@router.get("/submissions", response_model=WorkflowResponse)
def list_all_submissions(
    officer: OfficerProfile = Depends(require_oversight),
    engine: ClearanceWorkflowEngine = Depends(get_engine),
):
    return respond(engine.get_global_submissions())


@router.get("/requests", response_model=WorkflowResponse)
def list_all_requests(
    officer: OfficerProfile = Depends(require_oversight),
    engine: ClearanceWorkflowEngine = Depends(get_engine),
):
    """Every active clearance request with its progress."""
    return respond(engine.get_global_requests())


@router.get("/offices/{office_id}/statistics", response_model=WorkflowResponse)
def office_statistics(
    office_id: str,
    department: Optional[str] = None,
    officer: OfficerProfile = Depends(require_oversight),
    engine: ClearanceWorkflowEngine = Depends(get_engine),
):
    return respond(engine.get_office_statistics(office_id, department))


@router.delete("/requests/{student_id}", response_model=WorkflowResponse)
def archive_clearance(
    student_id: str,
    officer: OfficerProfile = Depends(require_oversight),
    engine: ClearanceWorkflowEngine = Depends(get_engine),
):
    """Archive a student's clearance. Administrators only."""
    return respond(engine.archive_student_clearance(student_id, officer))
