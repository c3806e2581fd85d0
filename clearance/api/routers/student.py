"""Student clearance endpoints."""

from fastapi import APIRouter, Depends

from clearance.api.deps import get_engine, get_final_forms, get_registry, require_student
from clearance.api.errors import respond
from clearance.api.schemas.clearance import SubmitDocumentsRequest
from clearance.api.schemas.common import WorkflowResponse
from clearance.core.identity import StudentProfile
from clearance.core.offices import OfficeRegistry
from clearance.core.workflow.engine import ClearanceWorkflowEngine
from clearance.services.final_forms import FinalFormsService

router = APIRouter(prefix="/student/clearance", tags=["student-clearance"])


@router.get("/offices", response_model=WorkflowResponse)
async def list_offices(
    student: StudentProfile = Depends(require_student),
    registry: OfficeRegistry = Depends(get_registry),
):
    """List clearance offices in approval order."""
    return {
        "success": True,
        "message": f"{registry.total} clearance offices",
        "data": [o.to_dict() for o in registry.list_offices()],
    }


@router.post("/initiate", response_model=WorkflowResponse)
def initiate_clearance(
    student: StudentProfile = Depends(require_student),
    engine: ClearanceWorkflowEngine = Depends(get_engine),
):
    return respond(engine.initiate_clearance(student))


@router.post("/submit", response_model=WorkflowResponse)
def submit_documents(
    body: SubmitDocumentsRequest,
    student: StudentProfile = Depends(require_student),
    engine: ClearanceWorkflowEngine = Depends(get_engine),
):
    """Submit document references to a clearance office."""
    result = engine.submit_to_office(
        student,
        body.office_id,
        [d.model_dump() for d in body.documents],
        officer_id=body.officer_id,
    )
    return respond(result)


@router.get("/status", response_model=WorkflowResponse)
def get_status(
    student: StudentProfile = Depends(require_student),
    engine: ClearanceWorkflowEngine = Depends(get_engine),
):
    return respond(engine.get_student_status(student.id))


@router.get("/can-access-forms", response_model=WorkflowResponse)
def can_access_forms(
    student: StudentProfile = Depends(require_student),
    engine: ClearanceWorkflowEngine = Depends(get_engine),
):
    return respond(engine.can_access_final_forms(student.id))


@router.get("/nysc-form", response_model=WorkflowResponse)
def access_nysc_form(
    student: StudentProfile = Depends(require_student),
    forms: FinalFormsService = Depends(get_final_forms),
):
    """Retrieve the NYSC form reference once clearance is complete."""
    return respond(forms.access_nysc_form(student))


@router.get("/id-card", response_model=WorkflowResponse)
def id_card_eligibility(
    student: StudentProfile = Depends(require_student),
    forms: FinalFormsService = Depends(get_final_forms),
):
    return respond(forms.id_card_eligibility(student))
