"""Artifacts unlocked by a completed clearance.

The NYSC mobilization form and the student ID card only become available
once every office has approved. Document rendering happens elsewhere; this
service decides access and records that the form was retrieved.
"""

import logging
from datetime import datetime, timezone

from clearance.core.errors import Forbidden, WorkflowResult
from clearance.core.identity import StudentProfile
from clearance.core.workflow.engine import validate_student, workflow_operation
from clearance.core.workflow.states import RequestStatus
from clearance.db.store import SubmissionStore

logger = logging.getLogger(__name__)


def nysc_form_number(matric_number: str, issued_at: datetime) -> str:
    """Form number in the ``NYSC-<epoch millis>-<matric>`` format."""
    return f"NYSC-{int(issued_at.replace(tzinfo=timezone.utc).timestamp() * 1000)}-{matric_number}"


class FinalFormsService:
    """Gatekeeper for post-clearance forms."""

    def __init__(self, store: SubmissionStore):
        self.store = store

    def _completed_request(self, student: StudentProfile):
        validate_student(student)
        request = self.store.get_active_request(student.id)
        if request is None or request.status != RequestStatus.COMPLETED:
            raise Forbidden("You must complete clearance before accessing final forms")
        return request

    @workflow_operation
    def access_nysc_form(self, student: StudentProfile) -> WorkflowResult:
        """
        Issue the NYSC form reference and mark it accessed.

        Returns:
            Result with ``{form_number, student_id, matric_number, issued_at}``
        """
        request = self._completed_request(student)
        issued_at = datetime.utcnow()

        self.store.mark_nysc_accessed(request.id)
        logger.info(f"NYSC form accessed by student {student.id}")

        return WorkflowResult.ok(
            "NYSC form is available",
            {
                "form_number": nysc_form_number(student.matric_number, issued_at),
                "student_id": student.id,
                "matric_number": student.matric_number,
                "issued_at": issued_at.isoformat(),
                "first_access": not request.nysc_accessed,
            },
        )

    @workflow_operation
    def id_card_eligibility(self, student: StudentProfile) -> WorkflowResult:
        validate_student(student)
        request = self.store.get_active_request(student.id)
        eligible = request is not None and request.status == RequestStatus.COMPLETED
        return WorkflowResult.ok(
            "Eligible for ID card" if eligible else "Clearance must be completed first",
            {
                "eligible": eligible,
                "completed_at": request.completed_at.isoformat() if eligible and request.completed_at else None,
            },
        )
